"""Error taxonomy for the valuation engine.

Recoverable failures (``SourceUnavailable``, ``LedgerUnreachable``) are handled
inside the engine and surface only through provenance metadata. Configuration
errors (``InvalidWeightConfiguration``, ``MalformedForecastSignal``) are
rejected before any I/O and reach the caller.
"""

from __future__ import annotations


class ValuationError(Exception):
    """Base class for every error raised by the valuation engine."""


class SourceUnavailable(ValuationError):
    """A single indicator or ledger field could not be read within its timeout."""

    def __init__(self, source: str, reason: str | None = None) -> None:
        self.source = source
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Source '{source}' unavailable{detail}")


class LedgerUnreachable(ValuationError):
    """The ledger reachability probe failed or timed out."""

    def __init__(self, rpc_url: str, reason: str) -> None:
        self.rpc_url = rpc_url
        self.reason = reason
        super().__init__(f"Ledger at {rpc_url} unreachable: {reason}")


class InvalidWeightConfiguration(ValuationError, ValueError):
    """Valuation weights are out of range or do not sum to exactly 100."""


class MalformedForecastSignal(ValuationError, ValueError):
    """A forecast signal carries a confidence, risk or score outside [0, 100]."""


__all__ = [
    "ValuationError",
    "SourceUnavailable",
    "LedgerUnreachable",
    "InvalidWeightConfiguration",
    "MalformedForecastSignal",
]
