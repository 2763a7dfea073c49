"""
Custom exception classes.

``ClientError`` is raised by the composer before anything touches the network.
``HistoryWriteError`` and ``StoreError`` come from the store client.
"""

import enum
import json
from typing import Any

# Substring the proxy leaves in its error details when the target host does not resolve.
DNS_MARKER = "ENOTFOUND"


class ClientErrorKind(str, enum.Enum):
    MISSING_URL = "MissingUrl"
    INVALID_URL = "InvalidUrl"
    INVALID_BODY = "InvalidBody"


class ClientError(Exception):
    """Raised when a draft cannot be turned into a dispatchable request."""

    def __init__(self, kind: ClientErrorKind, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class StoreError(Exception):
    """Raised when the history or collections store cannot serve a call."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Store call '{operation}' failed: {cause}")


class HistoryWriteError(StoreError):
    """A history record could not be written. Logged, never shown to the user."""

    def __init__(self, cause: Exception):
        super().__init__("record_history", cause)


def carries_dns_marker(status_code: int, payload: Any) -> bool:
    """
    Whether a proxy reply reports that the target's DNS name did not resolve.

    The proxy has no structured code for this; it surfaces as a 500 whose
    ``details`` field serializes to something containing ``ENOTFOUND``.
    """
    if status_code != 500 or not isinstance(payload, dict):
        return False
    details = payload.get("details")
    if not details:
        return False
    return DNS_MARKER in json.dumps(details, default=str)
