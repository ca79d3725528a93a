"""
Matter lifecycle, staffing, records and client-facing visibility.
"""
