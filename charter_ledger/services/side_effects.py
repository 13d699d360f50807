"""Best-effort side channel for secondary effects.

Secondary work (intercompany tracking records, cleanup) must never undo the
primary posting. The channel runs it, logs failures and hands back an
explicit result the caller can inspect or ignore.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass
class SideEffectResult:
    """Outcome of one secondary effect."""

    name: str
    ok: bool
    value: Any = None
    error: Optional[str] = None


class SideChannel:
    """Runs secondary effects and keeps their results.

    When a session is given, each effect runs in its own savepoint so a
    failed effect's writes are discarded while the caller's stay pending.
    """

    def __init__(self, session: Optional[Session] = None) -> None:
        self.session = session
        self.results: list[SideEffectResult] = []

    def run(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> SideEffectResult:
        """
        Run ``fn`` and capture its outcome.

        Args:
            name: Label used in logs and the result
            fn: Effect to run
            *args: Positional arguments for fn
            **kwargs: Keyword arguments for fn

        Returns:
            SideEffectResult (ok=False with the error message on failure)
        """
        try:
            if self.session is not None:
                with self.session.begin_nested():
                    value = fn(*args, **kwargs)
            else:
                value = fn(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Side effect '{name}' failed, continuing: {e}", exc_info=True)
            result = SideEffectResult(name=name, ok=False, error=str(e))
        else:
            result = SideEffectResult(name=name, ok=True, value=value)

        self.results.append(result)
        return result

    @property
    def failures(self) -> list[SideEffectResult]:
        return [result for result in self.results if not result.ok]
