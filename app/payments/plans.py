"""
Listing plan pricing.

Owners buy a listing term either per 6-month term or per 12-month year,
at the standard or the featured tier. Prices are whole Kenyan shillings.

Usage:
    from payments.plans import price_for

    amount = price_for("featured", 12)  # 1500
"""

from __future__ import annotations

from dataclasses import dataclass

from listings.models import ListingTier
from payments.exceptions import PaymentValidationError

TERM_MONTHS = 6
YEAR_MONTHS = 12
ALLOWED_TERM_MONTHS = (TERM_MONTHS, YEAR_MONTHS)


@dataclass(frozen=True)
class Plan:
    tier: str
    per_term: int
    per_year: int

    def price(self, term_months: int) -> int:
        if term_months == TERM_MONTHS:
            return self.per_term
        if term_months == YEAR_MONTHS:
            return self.per_year
        raise PaymentValidationError(
            f"Plans are sold for {TERM_MONTHS} or {YEAR_MONTHS} months",
            error_code="INVALID_TERM",
            details={"term_months": term_months},
        )


PLANS: dict[str, Plan] = {
    ListingTier.STANDARD: Plan(ListingTier.STANDARD, per_term=500, per_year=1000),
    ListingTier.FEATURED: Plan(ListingTier.FEATURED, per_term=750, per_year=1500),
}


def get_plan(tier: str) -> Plan:
    try:
        return PLANS[tier]
    except KeyError:
        raise PaymentValidationError(
            f"Unknown plan: {tier}",
            error_code="UNKNOWN_PLAN",
            details={"plan": tier, "available": sorted(PLANS)},
        ) from None


def price_for(tier: str, term_months: int) -> int:
    """Amount in KES for ``tier`` over ``term_months``."""
    return get_plan(tier).price(term_months)
