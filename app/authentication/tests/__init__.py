"""
Tests for authentication app.

This package contains test modules for:
- test_managers.py: UserManager creation helpers
- test_capabilities.py: Admin capability check and DRF permission

Usage:
    pytest authentication/tests/
"""
