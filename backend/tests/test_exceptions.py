"""
PeakStreak Backend: Error Taxonomy Tests
=========================================

What we test:
    ✅ Every subclass pins its kind
    ✅ wrap() prefixes the operation and keeps the kind
    ✅ classify_error(): timeouts, cancellations, unknown failures
    ✅ translate_errors(): passes PeakStreakErrors, wraps the rest,
       never swallows task cancellation
"""

import asyncio

import pytest

from peakstreak.exceptions import (
    AccessDeniedError,
    CannotFollowSelfError,
    DuplicateEmailError,
    DuplicateUsernameError,
    ErrorKind,
    InternalError,
    InvalidCredentialsError,
    NotFoundError,
    PeakStreakError,
    ValidationError,
    classify_error,
    translate_errors,
)


class TestErrorKinds:

    @pytest.mark.parametrize(
        "error, kind",
        [
            (NotFoundError("habit"), ErrorKind.NOT_FOUND),
            (AccessDeniedError(), ErrorKind.ACCESS_DENIED),
            (DuplicateUsernameError(), ErrorKind.DUPLICATE_USERNAME),
            (DuplicateEmailError(), ErrorKind.DUPLICATE_EMAIL),
            (InvalidCredentialsError(), ErrorKind.INVALID_CREDENTIALS),
            (CannotFollowSelfError(), ErrorKind.CANNOT_FOLLOW_SELF),
            (ValidationError("bad", field="avatar"), ErrorKind.VALIDATION),
            (InternalError(), ErrorKind.INTERNAL),
        ],
    )
    def test_subclass_pins_kind(self, error, kind):
        assert error.kind is kind

    def test_not_found_message_names_resource(self):
        err = NotFoundError(resource="habit", resource_id="abc")
        assert err.message == "habit not found"
        assert err.context == {"resource": "habit", "resource_id": "abc"}

    def test_wrap_keeps_kind_and_chains(self):
        original = NotFoundError(resource="user")
        wrapped = original.wrap("failed to get habits")

        assert wrapped.kind is ErrorKind.NOT_FOUND
        assert wrapped.message == "failed to get habits: user not found"
        assert wrapped.__cause__ is original


class TestClassifyError:

    def test_peakstreak_error_passes_through(self):
        err = AccessDeniedError()
        assert classify_error(err, "op") is err

    def test_timeout_becomes_deadline_exceeded(self):
        err = classify_error(TimeoutError(), "get followers count")
        assert err.kind is ErrorKind.DEADLINE_EXCEEDED
        assert err.context["operation"] == "get followers count"

    def test_cancelled_becomes_cancelled(self):
        err = classify_error(asyncio.CancelledError(), "get habits")
        assert err.kind is ErrorKind.CANCELLED

    def test_unknown_becomes_internal_without_leaking_message(self):
        cause = RuntimeError("connection to 10.0.0.3 refused")
        err = classify_error(cause, "get habits")

        assert err.kind is ErrorKind.INTERNAL
        assert "10.0.0.3" not in err.message
        assert err.context["original_error"] == "RuntimeError"
        assert err.__cause__ is cause


class TestTranslateErrors:

    def test_wraps_unknown_exception(self):
        with pytest.raises(PeakStreakError) as exc_info:
            with translate_errors("update habit"):
                raise KeyError("boom")
        assert exc_info.value.kind is ErrorKind.INTERNAL
        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_reraises_peakstreak_error_unchanged(self):
        original = NotFoundError(resource="habit")
        with pytest.raises(NotFoundError) as exc_info:
            with translate_errors("update habit"):
                raise original
        assert exc_info.value is original

    def test_does_not_catch_cancellation(self):
        with pytest.raises(asyncio.CancelledError):
            with translate_errors("get habits"):
                raise asyncio.CancelledError()
