"""
Payment domain models.

- Payment: one charge attempt for a listing term
"""

from payments.models.payment import Payment

__all__ = [
    "Payment",
]
