"""
Request and logging helpers shared across apps.

Usage:
    from core.helpers import get_client_ip, mask_phone

    ip = get_client_ip(request)
    logger.info("Charge sent", extra={"phone": mask_phone(phone)})
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django.http import HttpRequest


def get_client_ip(request: HttpRequest) -> str:
    """
    Extract the originating client IP, honouring X-Forwarded-For.

    The first address in the forwarded chain is the original client; the
    load balancer appends its own hops after it.

    Args:
        request: Django HTTP request

    Returns:
        Client IP address string (empty if unknown)
    """
    forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "")


def mask_phone(phone: str | None) -> str:
    """
    Mask a phone number for logs, keeping the last 3 digits.

    Example:
        mask_phone("254712345678")  # "*********678"
    """
    if not phone:
        return ""
    digits = re.sub(r"\D", "", phone)
    if len(digits) <= 3:
        return "***"
    return "*" * (len(digits) - 3) + digits[-3:]
