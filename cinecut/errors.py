from __future__ import annotations

from typing import Any


class CinecutError(Exception):
    """Base error for every failure raised by the post-production pipeline."""

    code = "CINECUT_ERROR"

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def user_message(self) -> str:
        return self.message

    def to_log_dict(self) -> dict[str, Any]:
        cause = self.__cause__
        return {
            "name": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "cause": str(cause) if cause is not None else None,
        }


class ValidationError(CinecutError):
    """Malformed descriptor or input, raised before any filter is compiled."""

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        errors: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context=context)
        self.field = field
        self.errors = list(errors or [message])


class EventLogError(ValidationError):
    """The interaction-event log could not be parsed."""

    code = "EVENT_LOG_ERROR"

    def __init__(self, message: str, *, line_number: int | None = None, line: str | None = None) -> None:
        super().__init__(message, context={"line_number": line_number, "line": line})
        self.line_number = line_number
        self.line = line


class ConfigurationError(CinecutError):
    code = "CONFIGURATION_ERROR"


class DependencyError(CinecutError):
    """A required external executable is missing or too old."""

    code = "DEPENDENCY_ERROR"

    def __init__(self, dependency: str, message: str | None = None) -> None:
        super().__init__(message or f"Required dependency not found: {dependency}", context={"dependency": dependency})
        self.dependency = dependency

    def user_message(self) -> str:
        if self.dependency in {"ffmpeg", "ffprobe"}:
            return (
                f"{self.message}\n"
                "Install FFmpeg 6.0+ from https://ffmpeg.org/download.html and make sure it is on PATH."
            )
        return f"{self.message}\nInstall '{self.dependency}' and try again."


class ExecutionError(CinecutError):
    """The external encoder exited non-zero."""

    code = "EXECUTION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        stderr_tail: str = "",
        context: dict[str, Any] | None = None,
    ) -> None:
        merged = {"returncode": returncode, **(context or {})}
        super().__init__(message, context=merged)
        self.returncode = returncode
        self.stderr_tail = stderr_tail
