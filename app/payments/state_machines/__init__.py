"""
State machine enums for payment models.
"""

from payments.state_machines.states import PaymentStatus, PaymentType

__all__ = [
    "PaymentStatus",
    "PaymentType",
]
