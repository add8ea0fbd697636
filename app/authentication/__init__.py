"""
Authentication application.

Key components:
    - User model: Custom email-based user (buyers, sellers and admins)
    - require_admin: The single admin capability check
    - IsPlatformAdmin: DRF permission wrapping the same check

Usage:
    from authentication.models import User
    from authentication.capabilities import require_admin
"""
