from switchboard.services.result import NOT_FOUND, UNKNOWN_STEP, Result


class TestResultSuccess:
    def test_success_creates_ok_result(self):
        result = Result.success("test value")
        assert result.ok is True
        assert result.value == "test value"
        assert result.error is None


class TestResultFailure:
    def test_failure_creates_not_ok_result(self):
        result = Result.failure("Unknown flow step: 'ghost'", UNKNOWN_STEP)
        assert result.ok is False
        assert result.error_code == UNKNOWN_STEP
        assert result.value is None

    def test_failure_default_code(self):
        assert Result.failure("Error message").error_code == "unknown"

    def test_not_found_code(self):
        assert Result.failure("missing", NOT_FOUND).error_code == "not_found"


class TestFailedWith:
    def test_matches_code_on_failure_only(self):
        assert Result.failure("missing", NOT_FOUND).failed_with(NOT_FOUND) is True
        assert Result.failure("missing", NOT_FOUND).failed_with(UNKNOWN_STEP) is False
        assert Result.success("value").failed_with(NOT_FOUND) is False
