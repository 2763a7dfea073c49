"""
Proxy dispatch.

Sends a composed request to the proxy, which performs the outbound call, and
turns whatever comes back into a ``DispatchOutcome``. HTTP statuses are data:
only a failure to complete the exchange with the proxy becomes a
``TransportFailure``.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from .config import settings
from .exceptions import carries_dns_marker
from .schemas import (
    ComposedRequest,
    DispatchOutcome,
    HttpError,
    Success,
    TransportFailure,
    TransportFailureKind,
)

logger = logging.getLogger("apiprobe.dispatcher")


def _payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def outcome_from_response(response: httpx.Response) -> DispatchOutcome:
    payload = _payload(response)

    if carries_dns_marker(response.status_code, payload):
        return TransportFailure(
            failure=TransportFailureKind.DNS_FAILURE,
            detail=str(payload.get("details")),
        )

    envelope = payload if isinstance(payload, dict) else {}
    if response.status_code >= 400:
        # The proxy wraps the target's body in "data"; its own errors are bare.
        data = envelope["data"] if "data" in envelope else payload
        return HttpError(status=response.status_code, data=data)

    return Success(
        status=envelope.get("status", response.status_code),
        data=envelope.get("data", payload if not envelope else None),
        time=envelope.get("time"),
        size=envelope.get("size"),
    )


class Dispatcher:
    def __init__(self, client: httpx.AsyncClient, proxy_url: str = None, timeout: float = None):
        self.client = client
        self.proxy_url = proxy_url or settings.PROXY_URL
        self.timeout = timeout if timeout is not None else settings.dispatch_timeout

    async def dispatch(self, request: ComposedRequest, identity: Optional[str]) -> DispatchOutcome:
        """
        Send one request through the proxy.

        Single attempt with a fixed deadline. No retries.
        """
        logger.info("Dispatching %s %s", request.method.value, request.url)
        try:
            # httpx timeouts apply per phase; wait_for bounds the whole exchange.
            response = await asyncio.wait_for(
                self.client.post(
                    self.proxy_url,
                    json={
                        "url": request.url,
                        "method": request.method.value,
                        "headers": request.headers,
                        "body": request.body,
                        "user_id": identity,
                    },
                    timeout=self.timeout,
                ),
                self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("Proxy deadline of %.1fs exceeded: %s", self.timeout, e)
            return TransportFailure(failure=TransportFailureKind.TIMEOUT, detail=str(e))
        except asyncio.TimeoutError:
            logger.warning("Proxy deadline of %.1fs exceeded before the reply completed", self.timeout)
            return TransportFailure(
                failure=TransportFailureKind.TIMEOUT, detail=f"no complete reply within {self.timeout:g}s"
            )
        except httpx.NetworkError as e:
            logger.warning("Proxy unreachable at %s: %s", self.proxy_url, e)
            return TransportFailure(failure=TransportFailureKind.NETWORK_ERROR, detail=str(e))
        except httpx.HTTPError as e:
            logger.error("Proxy exchange failed: %s", e)
            return TransportFailure(failure=TransportFailureKind.UNKNOWN, detail=str(e))

        outcome = outcome_from_response(response)
        logger.info("Proxy replied %d -> %s", response.status_code, outcome.kind)
        return outcome
