"""
Tests for the service layer base types and application exceptions.
"""

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from core.services import BaseService, ServiceResult


class TestServiceResult:
    def test_success(self):
        result = ServiceResult.success({"id": 1})

        assert result.success
        assert result
        assert result.data == {"id": 1}
        assert result.error is None

    def test_failure_keeps_partial_data(self):
        result = ServiceResult.failure("Not found", error_code="NOT_FOUND", data="partial")

        assert not result.success
        assert not result
        assert result.data == "partial"
        assert result.to_response() == {"success": False, "error": "Not found", "error_code": "NOT_FOUND"}

    def test_from_application_error(self):
        result = ServiceResult.from_exception(NotFoundError("Listing not found", error_code="LISTING_NOT_FOUND"))

        assert result.error == "Listing not found"
        assert result.error_code == "LISTING_NOT_FOUND"

    def test_from_plain_exception(self):
        result = ServiceResult.from_exception(KeyError("x"))

        assert result.error_code == "KEYERROR"


class TestBaseService:
    def test_logger_named_after_class(self):
        class ListingService(BaseService):
            pass

        assert ListingService.get_logger().name.endswith(".ListingService")


class TestApplicationErrors:
    def test_http_status_per_category(self):
        assert ValidationError("x").http_status == 400
        assert PermissionDeniedError("x").http_status == 403
        assert NotFoundError("x").http_status == 404
        assert ConflictError("x").http_status == 409
        assert ExternalServiceError("x").http_status == 502

    def test_to_dict(self):
        error = ConflictError("Already active", error_code="TERM_ALREADY_ACTIVE", details={"listing_id": "1"})

        assert error.to_dict() == {
            "error": "Already active",
            "error_code": "TERM_ALREADY_ACTIVE",
            "details": {"listing_id": "1"},
        }

    def test_to_dict_omits_empty_details(self):
        assert "details" not in BaseApplicationError("Oops").to_dict()

    def test_default_error_code(self):
        assert NotFoundError("x").error_code == "NOT_FOUND"
        assert str(NotFoundError("x")) == "[NOT_FOUND] x"
