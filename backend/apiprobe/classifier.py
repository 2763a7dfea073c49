"""
Outcome classification.

Maps a dispatch outcome, or a client error raised before dispatch, to one of
the two shapes callers render: ``Response`` or ``ErrorReport``.
"""

import json
from typing import Any, Union

from .exceptions import ClientError, ClientErrorKind, carries_dns_marker
from .schemas import (
    ClassifiedResult,
    DispatchOutcome,
    ErrorReport,
    HttpError,
    Response,
    Success,
    TransportFailure,
    TransportFailureKind,
)

STATUS_TEXT = {
    200: "OK",
    201: "Created",
    204: "No Content",
    301: "Moved Permanently",
    302: "Found",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}

EMPTY_RESPONSE_MESSAGE = "The server returned an empty response."

DNS_ERROR = ErrorReport(
    title="Address Not Found",
    message="Could not resolve the domain name. Please check the URL spelling.",
    status="DNS Error",
)

UNKNOWN_ERROR = ErrorReport(
    title="Request Failed",
    message="An unknown error occurred.",
    status="Error",
)

_TRANSPORT_REPORTS = {
    TransportFailureKind.NETWORK_ERROR: ErrorReport(
        title="Network Error",
        message="Could not reach the proxy server. Ensure it is running and reachable.",
        status="Connection Failed",
    ),
    TransportFailureKind.TIMEOUT: ErrorReport(
        title="Request Timed Out",
        message="The server took too long to respond (>15s).",
        status="Timeout",
    ),
    TransportFailureKind.DNS_FAILURE: DNS_ERROR,
}

_CLIENT_REPORTS = {
    ClientErrorKind.MISSING_URL: ErrorReport(
        title="Invalid URL",
        message="Please enter a valid URL to send a request.",
        status="Client Error",
    ),
    ClientErrorKind.INVALID_URL: ErrorReport(
        title="Invalid URL Format",
        message="The URL format is incorrect. Check for typos or missing http/https.",
        status="Client Error",
    ),
    ClientErrorKind.INVALID_BODY: ErrorReport(
        title="Invalid JSON",
        message="The request body contains invalid JSON. Please check your syntax.",
        status="Client Error",
    ),
}


def reason_phrase(status: int) -> str:
    return STATUS_TEXT.get(status, "Error")


def error_message(data: Any) -> str:
    if not data:
        return EMPTY_RESPONSE_MESSAGE
    if isinstance(data, str):
        return data
    return json.dumps(data, indent=2, ensure_ascii=False)


def classify_http_error(outcome: HttpError) -> ErrorReport:
    # A proxy-side DNS failure arrives as a plain 500 and must not be reported as one.
    if carries_dns_marker(outcome.status, outcome.data):
        return DNS_ERROR.model_copy()
    return ErrorReport(
        title=f"Error {outcome.status}: {reason_phrase(outcome.status)}",
        message=error_message(outcome.data),
        status=outcome.status,
    )


def classify(outcome: Union[DispatchOutcome, ClientError]) -> ClassifiedResult:
    if isinstance(outcome, Success):
        return Response(status=outcome.status, data=outcome.data, time=outcome.time, size=outcome.size)
    if isinstance(outcome, HttpError):
        return classify_http_error(outcome)
    if isinstance(outcome, TransportFailure):
        return _TRANSPORT_REPORTS.get(outcome.failure, UNKNOWN_ERROR).model_copy()
    if isinstance(outcome, ClientError):
        return _CLIENT_REPORTS.get(outcome.kind, UNKNOWN_ERROR).model_copy()
    return UNKNOWN_ERROR.model_copy()
