"""
Payment services for coordinating payment operations.

This module provides:
- PaymentOrchestrator: Initiates, resolves and looks up payments

Usage:
    from payments.services import InitiatePaymentParams, PaymentOrchestrator

    result = PaymentOrchestrator.initiate(
        InitiatePaymentParams(
            listing_id=listing.id,
            payer_id=user.id,
            amount=500,
            payment_type=PaymentType.NEW_LISTING,
            term_months=6,
            contact="0712345678",
        )
    )
"""

from payments.services.payment_orchestrator import (
    InitiatePaymentParams,
    InitiationResult,
    PaymentOrchestrator,
    ResolutionResult,
    account_reference,
    transaction_description,
)

__all__ = [
    "InitiatePaymentParams",
    "InitiationResult",
    "PaymentOrchestrator",
    "ResolutionResult",
    "account_reference",
    "transaction_description",
]
