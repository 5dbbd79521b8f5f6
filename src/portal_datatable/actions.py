"""Shared invocation bookkeeping for bulk and row actions.

Both managers follow the same flow: a request is either refused (disabled or
already running), parked behind a confirmation step, or executed. Execution
is tracked in an in-flight set keyed by the invocation so the same action
cannot be submitted twice while it runs, and failures are stored per
invocation until the caller clears them.
"""

from __future__ import annotations

import inspect
import uuid
from collections.abc import Hashable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from .logger import get_logger, log_action
from .models import ConfirmSpec
from .ui_errors import UserFacingError, to_user_facing_error

logger = get_logger(__name__)


class ActionStatus(str, Enum):
    DISABLED = "disabled"
    IN_FLIGHT = "in_flight"
    CONFIRMATION_REQUIRED = "confirmation_required"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ActionOutcome:
    status: ActionStatus
    action_key: str
    confirm: ConfirmSpec | None = None
    affected_keys: frozenset[Hashable] = frozenset()
    result: Any = None
    error: UserFacingError | None = None
    trace_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is ActionStatus.SUCCEEDED


async def call_maybe_async(func: Callable[..., Any], *args: Any) -> Any:
    result = func(*args)
    if inspect.isawaitable(result):
        return await result
    return result


@dataclass
class InvocationTracker:
    """In-flight, pending-confirmation and error state for one action manager."""

    module: str
    in_flight: set[Hashable] = field(default_factory=set)
    pending: set[Hashable] = field(default_factory=set)
    errors: dict[Hashable, UserFacingError] = field(default_factory=dict)

    def begin(self, invocation: Hashable) -> bool:
        if invocation in self.in_flight:
            return False
        self.in_flight.add(invocation)
        return True

    def end(self, invocation: Hashable) -> None:
        self.in_flight.discard(invocation)

    def is_busy(self, invocation: Hashable) -> bool:
        return invocation in self.in_flight

    def park(self, invocation: Hashable) -> None:
        self.pending.add(invocation)

    def is_pending(self, invocation: Hashable) -> bool:
        return invocation in self.pending

    def release(self, invocation: Hashable) -> bool:
        if invocation not in self.pending:
            return False
        self.pending.discard(invocation)
        return True

    def clear_error(self, invocation: Hashable) -> None:
        self.errors.pop(invocation, None)

    async def run(
        self,
        invocation: Hashable,
        action_key: str,
        execute: Callable[..., Any | Awaitable[Any]],
        argument: Any,
        *,
        affected_keys: frozenset[Hashable] = frozenset(),
    ) -> ActionOutcome:
        if not self.begin(invocation):
            log_action(logger, self.module, action_key, "in_flight")
            return ActionOutcome(ActionStatus.IN_FLIGHT, action_key)
        trace_id = str(uuid.uuid4())
        self.clear_error(invocation)
        try:
            result = await call_maybe_async(execute, argument)
        except Exception as exc:
            error = to_user_facing_error(exc)
            if error.trace_id is None:
                error = UserFacingError(message=error.message, details=error.details, trace_id=trace_id)
            self.errors[invocation] = error
            logger.exception("action %s failed", action_key)
            log_action(
                logger,
                self.module,
                action_key,
                "failed",
                trace_id=error.trace_id,
                error_type=type(exc).__name__,
                affected=len(affected_keys),
            )
            return ActionOutcome(ActionStatus.FAILED, action_key, error=error, trace_id=error.trace_id)
        finally:
            self.end(invocation)
        log_action(logger, self.module, action_key, "succeeded", trace_id=trace_id, affected=len(affected_keys))
        return ActionOutcome(
            ActionStatus.SUCCEEDED,
            action_key,
            affected_keys=affected_keys,
            result=result,
            trace_id=trace_id,
        )
