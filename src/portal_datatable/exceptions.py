from __future__ import annotations

from dataclasses import dataclass


class DataTableError(Exception):
    """Base class for every error raised by the engine."""


class ConfigError(DataTableError, ValueError):
    pass


class ConfigurationError(DataTableError, ValueError):
    """Invalid column, sort, preset or action configuration."""


@dataclass(frozen=True)
class ValidationIssue:
    path: str
    field: str | None
    reason: str

    def message(self) -> str:
        if self.field:
            return f"{self.path} ({self.field}): {self.reason}"
        return f"{self.path}: {self.reason}"


class FilterValidationError(DataTableError, ValueError):
    def __init__(self, issues: list[ValidationIssue]) -> None:
        self.issues = issues
        super().__init__(self._format_message())

    @property
    def messages(self) -> list[str]:
        return [issue.message() for issue in self.issues]

    def _format_message(self) -> str:
        if not self.issues:
            return "Filter validation failed"
        if len(self.issues) == 1:
            return self.issues[0].message()
        return f"{self.issues[0].message()} (+{len(self.issues) - 1} more)"


class PaginationError(DataTableError, ValueError):
    pass


class ActionError(DataTableError):
    def __init__(self, action_key: str, message: str) -> None:
        self.action_key = action_key
        super().__init__(message)


class ActionNotFoundError(ActionError):
    pass


@dataclass(eq=False)
class DataSourceError(DataTableError):
    code: str
    message: str
    details: object | None = None
    trace_id: str | None = None
    status_code: int = 0

    def __str__(self) -> str:
        trace = f" trace_id={self.trace_id}" if self.trace_id else ""
        return f"[{self.status_code}] {self.code}: {self.message}{trace}"


class TransportError(DataSourceError):
    """Network failure before an HTTP response was returned."""


class ClientRequestError(DataSourceError):
    """4xx responses from the record source."""


class ServerError(DataSourceError):
    """5xx responses from the record source."""


class MalformedResponseError(DataSourceError):
    """The record source answered without the expected data/total shape."""
