import json
import logging
from typing import Any, Dict, Optional

import httpx

from .exceptions import ClientError, ClientErrorKind
from .resolver import EnvironmentId, VariableResolver
from .schemas import ComposedRequest, RequestDraft

logger = logging.getLogger("apiprobe.composer")


def validate_url(url: str) -> str:
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise ClientError(ClientErrorKind.INVALID_URL, str(e)) from e
    if not parsed.scheme or not parsed.host:
        raise ClientError(ClientErrorKind.INVALID_URL, f"not an absolute URL: {url!r}")
    return url


def _reject_constant(name: str):
    # NaN and Infinity are not JSON, and the proxy payload encoder refuses them.
    raise ClientError(ClientErrorKind.INVALID_BODY, f"{name} is not valid JSON")


def parse_body(raw: str) -> Any:
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise ClientError(ClientErrorKind.INVALID_BODY, str(e)) from e


class RequestComposer:
    """Turns a draft into a ComposedRequest. Never talks to the network."""

    def __init__(self, resolver: VariableResolver):
        self.resolver = resolver

    async def compose(self, draft: RequestDraft, environment_id: Optional[EnvironmentId]) -> ComposedRequest:
        url = validate_url(await self.resolver.resolve(draft.url, environment_id))

        headers: Dict[str, str] = {}
        for h in draft.headers:
            if not h.key:
                continue
            key = await self.resolver.resolve(h.key, environment_id)
            if not key:
                continue
            # Later entries overwrite earlier ones with the same resolved key.
            headers[key] = await self.resolver.resolve(h.value, environment_id)

        body: Any = {}
        if draft.body.strip():
            # GET bodies are composed like any other; callers decide whether to warn.
            body = parse_body(await self.resolver.resolve(draft.body, environment_id))

        return ComposedRequest(url=url, method=draft.method, headers=headers, body=body)
