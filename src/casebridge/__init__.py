"""
CaseBridge - legal matter management for firms and their clients

A multi-tenant platform where:
- Clients file matters and follow their progress through a portal
- Firms review, staff and work matters in an internal workspace
- Every state change is attributed in a tamper-evident audit log
- Both sides are kept informed through in-app notifications
"""

__version__ = "0.1.0"
