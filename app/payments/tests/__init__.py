"""
Tests for payments app.

This package contains test modules for:
- test_models.py: Model constraints and helpers
- test_fee_calculator.py: Fee rule selection and rounding
- test_state_transitions.py / test_locks.py: FSM and row locking
- test_*_service.py: Service layer flows
- test_views.py: API endpoint tests

Usage:
    pytest payments/tests/
    pytest payments/tests/test_resolution_service.py
"""
