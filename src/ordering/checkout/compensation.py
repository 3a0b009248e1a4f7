"""Compensating actions for checkout.

There is no transaction spanning the catalog and the order store, so the
placement pipeline records an undo action for every side effect as it goes
and runs them newest-first when a later step fails.
"""

from collections.abc import Callable

import structlog

logger = structlog.get_logger(__name__)


class Compensations:
    """A stack of named undo actions, each called with the failure reason."""

    def __init__(self) -> None:
        self._steps: list[tuple[str, Callable[[str], None]]] = []

    def __len__(self) -> int:
        return len(self._steps)

    def push(self, name: str, action: Callable[[str], None]) -> None:
        self._steps.append((name, action))

    def run(self, reason: str) -> list[str]:
        """Run every action newest-first; return the names of those that failed.

        A failing action does not stop the remaining ones.
        """
        failed = []
        while self._steps:
            name, action = self._steps.pop()
            try:
                action(reason)
            except Exception:
                logger.exception("Compensation step failed", step=name, reason=reason)
                failed.append(name)
        return failed

    def discard(self) -> None:
        """Forget all actions once the pipeline has succeeded."""
        self._steps.clear()
