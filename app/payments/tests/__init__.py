"""
Tests for payments app.

This package contains test modules for:
- test_models.py / test_state_transitions.py: Payment model and FSM tests
- test_views.py: Initiate and status API endpoint tests
- test_tasks.py: Stale payment sweep tests
- test_integration.py: Full journeys through the API

Shared helpers:
- daraja.py: FakeDaraja transport and callback builder
- factories.py: Payment, listing and user factories

Usage:
    pytest payments/tests/
    pytest payments/tests/test_views.py
"""
