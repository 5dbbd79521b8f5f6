from __future__ import annotations

from dataclasses import dataclass

from .exceptions import ActionError, DataSourceError, FilterValidationError


@dataclass(frozen=True)
class UserFacingError:
    message: str
    details: str | None = None
    trace_id: str | None = None

    @property
    def technical_details(self) -> str | None:
        if self.details:
            return self.details
        return None


def to_user_facing_error(exc: BaseException) -> UserFacingError:
    if isinstance(exc, DataSourceError):
        primary = exc.message.strip() or "No fue posible cargar los datos"
        details = f"{exc.code} (HTTP {exc.status_code})"
        if exc.details:
            details = f"{details}: {exc.details}"
        return UserFacingError(message=primary, details=details, trace_id=exc.trace_id)
    if isinstance(exc, FilterValidationError):
        return UserFacingError(message="Filtros inválidos", details="; ".join(exc.messages))
    if isinstance(exc, ActionError):
        return UserFacingError(message=str(exc) or "La acción falló", details=exc.action_key)
    message = str(exc).strip() or "La operación falló"
    return UserFacingError(message=message, details=type(exc).__name__)
