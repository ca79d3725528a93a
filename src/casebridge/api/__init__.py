"""
HTTP API for CaseBridge.
"""
