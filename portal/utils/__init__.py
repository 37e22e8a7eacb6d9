# portal/utils/__init__.py
"""
Utilities shared across the portal.
"""
