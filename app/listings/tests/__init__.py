"""
Tests for listings app.

Usage:
    pytest listings/tests/
"""
