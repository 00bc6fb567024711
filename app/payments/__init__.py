"""
Payments app: paid listing terms over mobile money.

This app handles:
- Initiating M-Pesa STK push charges for listing terms
- Tracking each charge across the asynchronous provider round-trip
- Reconciling provider callbacks and status polls exactly once
- Activating the listing term when a payment completes

Related apps:
    - listings: Listing whose term a payment buys

Usage:
    from payments.services import InitiatePaymentParams, PaymentOrchestrator

    result = PaymentOrchestrator.initiate(
        InitiatePaymentParams(
            listing_id=listing.id,
            payer_id=user.id,
            amount=500,
            payment_type="new_listing",
            term_months=6,
            contact="0712345678",
        )
    )
"""
