"""Ordered hook runner with critical / best-effort steps.

Hooks run sequentially in registration order. A ``CRITICAL`` hook failure
aborts the run and propagates as ``HookExecutionError``; a ``BEST_EFFORT``
failure is logged and skipped, and its slot in the results is None.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, TypeVar

from .exceptions import HookExecutionError

logger = logging.getLogger(__name__)

ContextT = TypeVar("ContextT")


class HookCriticality(Enum):
    CRITICAL = "critical"
    BEST_EFFORT = "best_effort"


@dataclass(frozen=True)
class RegisteredHook(Generic[ContextT]):
    id: str
    criticality: HookCriticality
    run: Callable[[ContextT], Any]


class HookManager(Generic[ContextT]):
    """Runs an ordered list of ``(criticality, operation)`` hooks over one context."""

    def __init__(self) -> None:
        self._hooks: List[RegisteredHook[ContextT]] = []

    def register(
        self,
        hook_id: str,
        run: Callable[[ContextT], Any],
        criticality: HookCriticality = HookCriticality.CRITICAL,
    ) -> "HookManager[ContextT]":
        self._hooks.append(RegisteredHook(id=hook_id, criticality=criticality, run=run))
        return self

    @property
    def hooks(self) -> List[RegisteredHook[ContextT]]:
        return list(self._hooks)

    def execute(self, context: ContextT) -> List[Optional[Any]]:
        """
        Run every hook against ``context``.

        Returns:
            One result per hook, in order (None for a skipped best-effort hook)

        Raises:
            HookExecutionError: A critical hook raised
        """
        results: List[Optional[Any]] = []
        for hook in self._hooks:
            try:
                results.append(hook.run(context))
            except Exception as e:
                if hook.criticality is HookCriticality.CRITICAL:
                    logger.error(f"[Hooks] Critical hook failed: {hook.id}: {e}")
                    raise HookExecutionError(hook.id, str(e)) from e
                logger.warning(f"[Hooks] best_effort hook failed: {hook.id}: {e}", exc_info=True)
                results.append(None)
        return results
