"""
Listings app: the venue records ("gems") that owners pay to publish.

A listing carries two independent dimensions:
    - moderation_status: set by admins (pending/approved/rejected)
    - term_status + current_term_*: the paid coverage window, written only
      by payments.services.PaymentOrchestrator and the term-expiry sweep
"""
