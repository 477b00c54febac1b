"""
Typed exception hierarchy for the media plan import engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the pipeline (a web route, a CLI, a background worker) must be
able to tell "nothing happened" from "partially happened" from "refused"
without parsing message strings:

  1. Every boundary error has a TYPED exception class (catch by type).
  2. Every exception has a CODE class attribute (machine-readable, API-safe).
  3. Exceptions carry structured DATA as attributes, not only a message.

Example:
    try:
        pipeline.import_session(session_id, actor="planner@example.com")
    except CriticalValidationErrorsError as e:
        respond(status=409, code=e.code, critical=e.critical_count)

Row-level problems never raise. They are reported as validation issues
or per-row import outcomes so one bad row cannot abort a file.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    MediaPlanError (base)
    |
    +-- SessionError
    |   +-- SessionNotFoundError
    |   +-- SessionNotValidatedError
    |   +-- SessionStateError
    |   +-- CriticalValidationErrorsError
    |
    +-- FileError
    |   +-- StructuralFileError
    |   +-- UnsupportedSourceFormatError
    |
    +-- ConfigError
    |   +-- UnknownProfileError
    |   +-- ProfileDefinitionError
    |   +-- InvalidSettingsError
    |
    +-- ScopeError
    |   +-- InvalidScopeError
    |
    +-- ImportExecutionError
        +-- ImportFailedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                        | When Raised
-----------|-----------------------------|------------------------------------------
Session    | SESSION_NOT_FOUND           | Unknown session id
           | SESSION_NOT_VALIDATED       | Import requested before validation
           | INVALID_SESSION_STATE       | Stage not allowed in current status
           | CRITICAL_VALIDATION_ERRORS  | Import requested with critical issues
-----------|-----------------------------|------------------------------------------
File       | STRUCTURAL_FILE_ERROR       | Malformed file; no session created
           | UNSUPPORTED_SOURCE_FORMAT   | No adapter for the file type
-----------|-----------------------------|------------------------------------------
Config     | UNKNOWN_PROFILE             | Import profile name not configured
           | PROFILE_DEFINITION_ERROR    | Profile YAML is inconsistent
           | INVALID_SETTINGS            | settings.yaml value out of range
-----------|-----------------------------|------------------------------------------
Scope      | INVALID_SCOPE               | Scope ids do not exist
-----------|-----------------------------|------------------------------------------
Import     | INTERNAL_FAILURE            | Scope replace rolled back
===============================================================================
"""


class MediaPlanError(Exception):
    """
    Base exception for all import engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "MEDIAPLAN_ERROR"


# Session-related exceptions


class SessionError(MediaPlanError):
    """Base exception for import session errors."""

    code: str = "SESSION_ERROR"


class SessionNotFoundError(SessionError):
    """Import session with given ID was not found."""

    code: str = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Import session not found: {session_id}")


class SessionNotValidatedError(SessionError):
    """Import requested for a session that is not in the validated state."""

    code: str = "SESSION_NOT_VALIDATED"

    def __init__(self, session_id: str, status: str):
        self.session_id = session_id
        self.status = status
        super().__init__(
            f"Import session {session_id} is not validated (status={status})"
        )


class SessionStateError(SessionError):
    """Operation not allowed in the session's current status."""

    code: str = "INVALID_SESSION_STATE"

    def __init__(self, session_id: str, status: str, operation: str):
        self.session_id = session_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} import session {session_id} in status {status}"
        )


class CriticalValidationErrorsError(SessionError):
    """Import requested for a session whose validation found critical issues."""

    code: str = "CRITICAL_VALIDATION_ERRORS"

    def __init__(self, session_id: str, critical_count: int):
        self.session_id = session_id
        self.critical_count = critical_count
        super().__init__(
            f"Import session {session_id} has {critical_count} critical "
            "validation errors present"
        )


# File-related exceptions


class FileError(MediaPlanError):
    """Base exception for source file errors."""

    code: str = "FILE_ERROR"


class StructuralFileError(FileError):
    """
    Source file is malformed and cannot be read as rows.

    Raised at upload time. No session is created.
    """

    code: str = "STRUCTURAL_FILE_ERROR"

    def __init__(self, reason: str, line_number: int | None = None, source: str | None = None):
        self.reason = reason
        self.line_number = line_number
        self.source = source
        where = f" at line {line_number}" if line_number is not None else ""
        super().__init__(f"Malformed source file{where}: {reason}")


class UnsupportedSourceFormatError(FileError):
    """No adapter is registered for the file's format."""

    code: str = "UNSUPPORTED_SOURCE_FORMAT"

    def __init__(self, source_format: str, supported: list[str]):
        self.source_format = source_format
        self.supported = supported
        super().__init__(
            f"Unsupported source format {source_format!r}; supported: {', '.join(supported)}"
        )


# Configuration exceptions


class ConfigError(MediaPlanError):
    """Base exception for configuration errors."""

    code: str = "CONFIG_ERROR"


class UnknownProfileError(ConfigError):
    """No import profile with the given name is configured."""

    code: str = "UNKNOWN_PROFILE"

    def __init__(self, profile_name: str, available: list[str]):
        self.profile_name = profile_name
        self.available = available
        super().__init__(
            f"Unknown import profile {profile_name!r}; available: {', '.join(available) or '(none)'}"
        )


class ProfileDefinitionError(ConfigError):
    """An import profile definition is internally inconsistent."""

    code: str = "PROFILE_DEFINITION_ERROR"

    def __init__(self, profile_name: str, reason: str):
        self.profile_name = profile_name
        self.reason = reason
        super().__init__(f"Invalid import profile {profile_name!r}: {reason}")


class InvalidSettingsError(ConfigError):
    """An engine setting has an unsupported value."""

    code: str = "INVALID_SETTINGS"

    def __init__(self, setting: str, value: object, reason: str):
        self.setting = setting
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid setting {setting}={value!r}: {reason}")


# Scope exceptions


class ScopeError(MediaPlanError):
    """Base exception for import scope errors."""

    code: str = "SCOPE_ERROR"


class InvalidScopeError(ScopeError):
    """One or more scope identifiers do not exist in the master data."""

    code: str = "INVALID_SCOPE"

    def __init__(self, missing: dict[str, int]):
        self.missing = missing
        parts = ", ".join(f"{k}={v}" for k, v in sorted(missing.items()))
        super().__init__(f"Import scope references unknown master data: {parts}")


# Import execution exceptions


class ImportExecutionError(MediaPlanError):
    """Base exception for scoped import execution errors."""

    code: str = "IMPORT_EXECUTION_ERROR"


class ImportFailedError(ImportExecutionError):
    """
    The scoped replace failed as a whole and was rolled back.

    The previous facts of the scope are untouched; the session is left in
    the error state with the reason recorded.
    """

    code: str = "INTERNAL_FAILURE"

    def __init__(self, session_id: str, reason: str):
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Import of session {session_id} failed and was rolled back: {reason}")
