"""
TempShare - temporary paste sharing and a password-protected vault
"""

__version__ = "1.0.0"
