"""
Tests for handler error mapping and caller authentication.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from cvplus_payments.api.auth import CallerIdentity, decode_caller_token, require_same_user
from cvplus_payments.config.settings import PaymentsSettings
from cvplus_payments.errors import (
    FailedPreconditionError,
    InternalError,
    InvalidFeatureError,
    PermissionDeniedError,
    UnauthenticatedError,
    UserNotFoundError,
    run_handler,
)

JWT_SECRET = "test-jwt-secret"


class TestFunctionErrors:

    @pytest.mark.parametrize("error,code,http_status", [
        (UnauthenticatedError("x"), "unauthenticated", 401),
        (PermissionDeniedError("x"), "permission-denied", 403),
        (InvalidFeatureError("teleport"), "invalid-argument", 400),
        (FailedPreconditionError("x"), "failed-precondition", 400),
        (UserNotFoundError("u1"), "not-found", 404),
        (InternalError("x"), "internal", 500),
    ])
    def test_codes(self, error, code, http_status):
        assert error.code == code
        assert error.http_status == http_status

    def test_to_dict_includes_details_when_present(self):
        assert InvalidFeatureError("teleport").to_dict() == {
            "error": {
                "status": "invalid-argument",
                "message": "Valid premium feature required",
                "details": {"feature": "teleport"},
            },
        }
        assert UserNotFoundError("u1").to_dict() == {
            "error": {"status": "not-found", "message": "User profile not found"},
        }


class TestRunHandler:

    def test_returns_result(self):
        assert run_handler("checkFeatureAccess", lambda: 42) == 42

    def test_typed_errors_propagate_unchanged(self):
        error = FailedPreconditionError("User already has lifetime premium access")

        def fail():
            raise error

        with pytest.raises(FailedPreconditionError) as exc_info:
            run_handler("createPaymentIntent", fail)

        assert exc_info.value is error

    def test_unexpected_errors_become_internal(self):
        def fail():
            raise ConnectionError("stripe unreachable")

        with pytest.raises(InternalError) as exc_info:
            run_handler("createPaymentIntent", fail, context={"user_id": "u1"})

        assert exc_info.value.message == "Failed to create payment intent"
        assert isinstance(exc_info.value.__cause__, ConnectionError)


@pytest.mark.security
class TestDecodeCallerToken:

    @pytest.fixture
    def auth_settings(self):
        return PaymentsSettings(auth_jwt_secret=JWT_SECRET)

    def test_valid_token(self, auth_settings):
        token = jwt.encode({"sub": "user-1", "email": "a@example.com"}, JWT_SECRET, algorithm="HS256")

        assert decode_caller_token(token, auth_settings) == CallerIdentity(uid="user-1", email="a@example.com")

    def test_expired_token(self, auth_settings):
        token = jwt.encode(
            {"sub": "user-1", "exp": datetime.now(timezone.utc) - timedelta(minutes=5)},
            JWT_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(UnauthenticatedError) as exc_info:
            decode_caller_token(token, auth_settings)

        assert exc_info.value.message == "Authentication token has expired"

    def test_wrong_secret(self, auth_settings):
        token = jwt.encode({"sub": "user-1"}, "another-secret", algorithm="HS256")

        with pytest.raises(UnauthenticatedError):
            decode_caller_token(token, auth_settings)

    def test_missing_subject(self, auth_settings):
        token = jwt.encode({"email": "a@example.com"}, JWT_SECRET, algorithm="HS256")

        with pytest.raises(UnauthenticatedError):
            decode_caller_token(token, auth_settings)

    def test_unconfigured_secret_rejects(self):
        token = jwt.encode({"sub": "user-1"}, JWT_SECRET, algorithm="HS256")

        with pytest.raises(UnauthenticatedError):
            decode_caller_token(token, PaymentsSettings(auth_jwt_secret=None))

    def test_audience_is_enforced_when_configured(self):
        settings = PaymentsSettings(auth_jwt_secret=JWT_SECRET, auth_jwt_audience="cvplus")
        good = jwt.encode({"sub": "user-1", "aud": "cvplus"}, JWT_SECRET, algorithm="HS256")
        bad = jwt.encode({"sub": "user-1", "aud": "other"}, JWT_SECRET, algorithm="HS256")

        assert decode_caller_token(good, settings).uid == "user-1"
        with pytest.raises(UnauthenticatedError):
            decode_caller_token(bad, settings)


@pytest.mark.security
class TestRequireSameUser:

    def test_same_user_passes(self):
        require_same_user(CallerIdentity(uid="user-1"), "user-1")

    @pytest.mark.parametrize("user_id", ["user-2", None, ""])
    def test_mismatch_is_permission_denied(self, user_id):
        with pytest.raises(PermissionDeniedError) as exc_info:
            require_same_user(CallerIdentity(uid="user-1"), user_id)

        assert exc_info.value.message == "User ID mismatch"
