# =======================================================================================
# campus_access/__init__.py - Package Initialization
# =======================================================================================
"""
Campus Access Control - QR Credential Gate

Issues member and visitor credentials, resolves scanned QR payloads back to
identities and records alternating entry/exit events for the campus gates.
"""

__version__ = "1.0.0"
__author__ = "Campus Access Control Team"
