"""
Application-level exceptions.

Every engine failure is a NetRiskError with a stable `code` so the API and
the CLI can map it to a response without string matching. Input failures
also carry the name of the source collection they came from.
"""

from __future__ import annotations

from typing import Any


class NetRiskError(Exception):
    """Base class for all engine errors."""

    code = "netrisk_error"

    def __init__(self, message: str, *, collection: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.collection = collection

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.collection:
            out["collection"] = self.collection
        return out


class ConfigurationError(NetRiskError):
    """Invalid settings value or inconsistent lookup table."""

    code = "configuration_error"


class InputUnavailable(NetRiskError):
    """A source collection could not be fetched (error or timeout)."""

    code = "input_unavailable"

    def __init__(self, collection: str, cause: BaseException | None = None) -> None:
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "unavailable"
        super().__init__(f"{collection} unavailable ({detail})", collection=collection)
        self.cause = cause


class InputMalformed(NetRiskError):
    """A single input row is missing required fields or has invalid values."""

    code = "input_malformed"

    def __init__(self, collection: str, reason: str, row_index: int | None = None) -> None:
        where = f" row {row_index}" if row_index is not None else ""
        super().__init__(f"{collection}{where}: {reason}", collection=collection)
        self.reason = reason
        self.row_index = row_index


class ComputationTimeout(NetRiskError):
    """The authoritative backend did not answer within its time budget."""

    code = "computation_timeout"

    def __init__(self, timeout_sec: float) -> None:
        super().__init__(f"authoritative computation exceeded {timeout_sec}s")
        self.timeout_sec = timeout_sec


class AnalysisUnrecoverable(NetRiskError):
    """Every source collection failed; no snapshot to compute from."""

    code = "analysis_unrecoverable"

    def __init__(self, failures: list[InputUnavailable]) -> None:
        names = ", ".join(f.collection or "?" for f in failures)
        super().__init__(f"all input collections failed: {names}")
        self.failures = failures

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["failures"] = [f.to_dict() for f in self.failures]
        return out
