"""
Placeholder substitution.

``{{key}}`` tokens are replaced in a single pass with the values of the active
environment's enabled bindings. Substituted text is never scanned again, so a
value that itself contains ``{{other}}`` comes out literally.
"""

import logging
import re
from typing import Callable, Iterable, List, Optional, Protocol, Union

from sqlalchemy.orm import Session

from .db import SessionLocal
from .models import EnvironmentVariable
from .schemas import VariableBinding

logger = logging.getLogger("apiprobe.resolver")

EnvironmentId = Union[int, str]


class EnvironmentStore(Protocol):
    async def enabled_bindings(self, environment_id: EnvironmentId) -> List[VariableBinding]: ...


class SqlEnvironmentStore:
    """Reads bindings straight from the environment tables, in stored order."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    async def enabled_bindings(self, environment_id: EnvironmentId) -> List[VariableBinding]:
        try:
            env_id = int(environment_id)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric environment id %r", environment_id)
            return []

        db = self.session_factory()
        try:
            rows = (
                db.query(EnvironmentVariable)
                .filter(
                    EnvironmentVariable.environment_id == env_id,
                    EnvironmentVariable.enabled.is_(True),
                )
                .order_by(EnvironmentVariable.id)
                .all()
            )
        finally:
            db.close()
        return [VariableBinding(key=r.key, value=r.value or "") for r in rows if r.key]


def apply_bindings(text: str, bindings: Iterable[VariableBinding]) -> str:
    values = {}
    for b in bindings:
        # Duplicate keys: the first enabled binding in stored order wins.
        if b.enabled and b.key not in values:
            values[b.key] = b.value
    if not values:
        return text

    alternatives = "|".join(re.escape(k) for k in sorted(values, key=len, reverse=True))
    pattern = re.compile(r"\{\{(" + alternatives + r")\}\}")
    return pattern.sub(lambda m: values[m.group(1)], text)


class VariableResolver:
    def __init__(self, store: EnvironmentStore):
        self.store = store

    async def resolve(self, text: str, environment_id: Optional[EnvironmentId]) -> str:
        if not text or environment_id is None or environment_id == "" or "{{" not in text:
            return text

        # One lookup per call; bindings are whatever the store holds right now.
        bindings = await self.store.enabled_bindings(environment_id)
        logger.debug("Resolving against environment %s (%d bindings)", environment_id, len(bindings))
        return apply_bindings(text, bindings)
