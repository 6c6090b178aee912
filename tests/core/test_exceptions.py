"""Tests for the exception hierarchy and HTTP mapping."""

import pytest

from booking_commons.core.exceptions import (
    AuthorizationError,
    BookingCommonsError,
    ConfigurationError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    QueryError,
    UserNotFoundError,
    ValidationError,
    create_error_response,
    get_http_status_code,
)


class TestBookingCommonsError:
    """Test the base exception."""

    def test_defaults(self):
        error = BookingCommonsError("Something failed")

        assert error.message == "Something failed"
        assert error.error_code == "BookingCommonsError"
        assert error.details == {}
        assert str(error) == "Something failed"

    def test_subclass_error_code(self):
        assert DatabaseError("down").error_code == "DatabaseError"

    def test_explicit_error_code_and_details(self):
        error = ValidationError("Bad input", error_code="INVALID_USER_ID", details={"field": "user_id"})

        assert error.error_code == "INVALID_USER_ID"
        assert error.details == {"field": "user_id"}


class TestForbiddenError:
    """Test the authorization failure carrying audit context."""

    def test_context_includes_user_and_timestamp(self):
        error = ForbiddenError(error_context={"permission": "document:edit"}, user_id="u1")

        assert error.message == "Permission denied"
        assert error.user_id == "u1"
        assert error.details["permission"] == "document:edit"
        assert "timestamp" in error.details

    def test_context_is_copied(self):
        context = {"path": "/documents"}
        ForbiddenError(error_context=context, user_id="u1")

        assert context == {"path": "/documents"}

    def test_is_authorization_error(self):
        assert isinstance(ForbiddenError(), AuthorizationError)


class TestHttpMapping:
    """Test exception to HTTP status mapping."""

    @pytest.mark.parametrize("error,status", [
        (ValidationError("bad"), 400),
        (ForbiddenError(), 403),
        (AuthorizationError("no"), 403),
        (NotFoundError("missing"), 404),
        (UserNotFoundError("missing role"), 404),
        (DatabaseError("down"), 500),
        (QueryError("syntax"), 500),
        (ConfigurationError("misconfigured"), 500),
        (BookingCommonsError("generic"), 500),
        (RuntimeError("foreign"), 500),
    ])
    def test_status_codes(self, error, status):
        assert get_http_status_code(error) == status

    def test_unmapped_subclass_inherits_parent_status(self):
        class RoleExpiredError(ValidationError):
            pass

        assert get_http_status_code(RoleExpiredError("expired")) == 400

    def test_error_response(self):
        response = create_error_response(UserNotFoundError("Role not found", details={"role": "GHOST"}))

        assert response == {
            "error": {
                "code": "UserNotFoundError",
                "message": "Role not found",
                "details": {"role": "GHOST"},
                "type": "UserNotFoundError",
            }
        }

    def test_helpers_live_in_http_mapping(self):
        from booking_commons.core.exceptions import base, http_mapping

        assert http_mapping.create_error_response is create_error_response
        assert http_mapping.get_http_status_code is get_http_status_code
        assert not hasattr(base, "create_error_response")
        assert not hasattr(base, "get_http_status_code")

    def test_error_response_for_forbidden_error(self):
        error = ForbiddenError("Role required", error_code="ROLE_REQUIRED", user_id="u1")

        body = create_error_response(error)["error"]

        assert get_http_status_code(error) == 403
        assert body["code"] == "ROLE_REQUIRED"
        assert body["type"] == "ForbiddenError"
        assert body["details"]["user_id"] == "u1"
