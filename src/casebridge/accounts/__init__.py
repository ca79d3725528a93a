"""
Principal accounts and firms.
"""
