"""Cancellation tokens for cooperative interruption of polling pipelines.

A CancellationToken is handed to every in-flight fetch pipeline. Pipelines
check it at their commit points (before writing to the entry cache or the
job store) so a stopped loop never publishes stale results.

A CancellationSource owns the "current" token of an engine. Cancelling the
source broadcasts to every pipeline holding the current token and arms a
fresh token for pipelines started afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import OperationCancelled


@dataclass
class CancellationToken:
    """Mutable token for cooperative cancellation.

    Usage:
        token = CancellationToken()

        rows = await transport.query_rows(...)
        token.raise_if_cancelled()
        cache.set(key, rows)

        # To cancel:
        token.cancel()
    """

    _cancelled: bool = field(default=False, init=False)

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation (idempotent)."""
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelled if cancelled.

        Raises:
            OperationCancelled: If cancellation was requested.
        """
        if self._cancelled:
            raise OperationCancelled()


class CancellationSource:
    """Issues tokens and broadcasts cancellation to all holders of the current one."""

    def __init__(self) -> None:
        self._token = CancellationToken()

    @property
    def token(self) -> CancellationToken:
        """Token for pipelines starting now."""
        return self._token

    def cancel_pending(self) -> None:
        """Cancel every pipeline holding the current token and arm a fresh one."""
        previous, self._token = self._token, CancellationToken()
        previous.cancel()


__all__ = ["CancellationToken", "CancellationSource", "OperationCancelled"]
