"""API response envelope shared by the REST endpoints and the alert channel."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from idswatch.contracts.alert import Alert
from idswatch.errors import AlertDecodeError


@dataclass(frozen=True, slots=True)
class ApiEnvelope:
    """``{success, data, error, timestamp}`` wrapper around every payload."""

    success: bool
    data: Any = None
    error: str | None = None
    timestamp: str = ""

    def alert(self) -> Alert:
        """Return the wrapped Alert.

        Raises:
            AlertDecodeError: if the envelope reports failure or carries no data.
        """
        if not self.success:
            raise AlertDecodeError(f"server reported failure: {self.error or 'unknown error'}")
        if self.data is None:
            raise AlertDecodeError("envelope has no data")
        return Alert.from_dict(self.data)


def decode_envelope(raw: str | bytes) -> ApiEnvelope:
    """Parse one channel frame into an :class:`ApiEnvelope`."""
    try:
        obj = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise AlertDecodeError(f"invalid JSON payload: {exc}") from exc
    if not isinstance(obj, dict):
        raise AlertDecodeError("payload is not a JSON object")
    return ApiEnvelope(
        success=bool(obj.get("success", False)),
        data=obj.get("data"),
        error=obj.get("error"),
        timestamp=str(obj.get("timestamp") or ""),
    )
