"""
Tests for core request/logging helpers and the health endpoint.
"""

import pytest
from django.test import RequestFactory

from core.helpers import get_client_ip, mask_phone


class TestGetClientIp:
    def test_remote_addr(self):
        request = RequestFactory().get("/", REMOTE_ADDR="196.201.214.200")

        assert get_client_ip(request) == "196.201.214.200"

    def test_first_forwarded_address_wins(self):
        request = RequestFactory().get(
            "/",
            REMOTE_ADDR="10.0.0.2",
            HTTP_X_FORWARDED_FOR="196.201.214.200, 10.0.0.1",
        )

        assert get_client_ip(request) == "196.201.214.200"


class TestMaskPhone:
    @pytest.mark.parametrize(
        "phone,masked",
        [
            ("254712345678", "*********678"),
            ("+254 712 345 678", "*********678"),
            ("12", "***"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_masks_all_but_last_three_digits(self, phone, masked):
        assert mask_phone(phone) == masked


class TestHealthCheck:
    def test_healthy(self, db, client):
        response = client.get("/health/")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected"}
