"""Exception hierarchy and machine-readable codes."""

import pytest

from mediaplan_kernel.exceptions import (
    ConfigError,
    CriticalValidationErrorsError,
    FileError,
    ImportExecutionError,
    ImportFailedError,
    InvalidScopeError,
    InvalidSettingsError,
    MediaPlanError,
    ProfileDefinitionError,
    ScopeError,
    SessionError,
    SessionNotFoundError,
    SessionNotValidatedError,
    SessionStateError,
    StructuralFileError,
    UnknownProfileError,
    UnsupportedSourceFormatError,
)

ERRORS = [
    (SessionNotFoundError("s1"), SessionError, "SESSION_NOT_FOUND"),
    (SessionNotValidatedError("s1", "uploaded"), SessionError, "SESSION_NOT_VALIDATED"),
    (SessionStateError("s1", "imported", "validate"), SessionError, "INVALID_SESSION_STATE"),
    (CriticalValidationErrorsError("s1", 3), SessionError, "CRITICAL_VALIDATION_ERRORS"),
    (StructuralFileError("File is empty", line_number=1), FileError, "STRUCTURAL_FILE_ERROR"),
    (UnsupportedSourceFormatError(".pdf", [".csv"]), FileError, "UNSUPPORTED_SOURCE_FORMAT"),
    (UnknownProfileError("radio", ["game_plan"]), ConfigError, "UNKNOWN_PROFILE"),
    (ProfileDefinitionError("game_plan", "bad"), ConfigError, "PROFILE_DEFINITION_ERROR"),
    (InvalidSettingsError("log_level", "LOUD", "bad"), ConfigError, "INVALID_SETTINGS"),
    (InvalidScopeError({"period_id": 9}), ScopeError, "INVALID_SCOPE"),
    (ImportFailedError("s1", "disk full"), ImportExecutionError, "INTERNAL_FAILURE"),
]


class TestHierarchy:
    @pytest.mark.parametrize("exc,base,code", ERRORS)
    def test_code_and_base(self, exc, base, code):
        assert isinstance(exc, base)
        assert isinstance(exc, MediaPlanError)
        assert exc.code == code

    def test_codes_unique(self):
        codes = [code for _, _, code in ERRORS]
        assert len(codes) == len(set(codes))


class TestMessages:
    def test_structural_error_names_line(self):
        exc = StructuralFileError("Expected 3 columns, found 2", line_number=4, source="plan.csv")
        assert str(exc) == "Malformed source file at line 4: Expected 3 columns, found 2"

    def test_critical_count_in_message(self):
        assert "3 critical" in str(CriticalValidationErrorsError("s1", 3))

    def test_invalid_scope_lists_ids(self):
        exc = InvalidScopeError({"period_id": 9, "country_id": 7})
        assert str(exc).endswith("country_id=7, period_id=9")

    def test_unknown_profile_without_profiles(self):
        assert "(none)" in str(UnknownProfileError("x", []))
