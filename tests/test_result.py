import dataclasses

import pytest

from app.services.result import FETCH_ERROR, Result


class TestResultSuccess:
    def test_success_creates_ok_result(self):
        result = Result.success(("A01", "B02"))
        assert result.ok is True
        assert result.value == ("A01", "B02")
        assert result.error is None
        assert result.error_code is None

    def test_success_with_empty_collection(self):
        result = Result.success(())
        assert result.ok is True
        assert result.value == ()


class TestResultFailure:
    def test_failure_creates_not_ok_result(self):
        result = Result.failure("Dataset host unreachable", FETCH_ERROR)
        assert result.ok is False
        assert result.error == "Dataset host unreachable"
        assert result.error_code == "fetch_error"
        assert result.value is None

    def test_failure_default_code(self):
        result = Result.failure("Error message")
        assert result.error_code == "unknown"


class TestResultUnwrapOr:
    def test_unwrap_or_returns_value_on_success(self):
        assert Result.success("actual value").unwrap_or("default") == "actual value"

    def test_unwrap_or_returns_default_on_failure(self):
        assert Result.failure("Error", FETCH_ERROR).unwrap_or(()) == ()

    def test_unwrap_or_with_none_value(self):
        assert Result.success(None).unwrap_or("default") is None


class TestResultImmutable:
    def test_cannot_reassign_fields(self):
        result = Result.success(1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.ok = False
