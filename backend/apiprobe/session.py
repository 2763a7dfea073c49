"""
Session-scoped state and auth change notifications.

``WorkbenchSession`` holds what a single user's editor owns: the current
draft, the active environment and the signed-in identity. Auth changes reach
it over an ``AuthEventChannel``; subscribing returns a handle that tears the
listener down explicitly.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .resolver import EnvironmentId
from .schemas import RequestDraft

logger = logging.getLogger("apiprobe.session")


class AuthEvent(str, enum.Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


AuthListener = Callable[[AuthEvent, Optional[str]], None]


class Subscription:
    def __init__(self, channel: "AuthEventChannel", listener: AuthListener):
        self._channel = channel
        self._listener = listener
        self.active = True

    def unsubscribe(self):
        if self.active:
            self._channel._remove(self._listener)
            self.active = False


class AuthEventChannel:
    def __init__(self):
        self._listeners: List[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove(self, listener: AuthListener):
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def publish(self, event: AuthEvent, user_id: Optional[str] = None):
        for listener in list(self._listeners):
            try:
                listener(event, user_id)
            except Exception:
                logger.exception("Auth listener failed on %s", event.value)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


@dataclass
class WorkbenchSession:
    draft: RequestDraft = field(default_factory=RequestDraft)
    active_environment_id: Optional[EnvironmentId] = None
    user_id: Optional[str] = None
    password_recovery: bool = False
    _subscription: Optional[Subscription] = field(default=None, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id) and not self.password_recovery

    def snapshot(self) -> RequestDraft:
        return self.draft.model_copy(deep=True)

    def on_auth_event(self, event: AuthEvent, user_id: Optional[str] = None):
        if event == AuthEvent.PASSWORD_RECOVERY:
            self.password_recovery = True
        elif event == AuthEvent.SIGNED_OUT:
            self.user_id = None
            self.password_recovery = False
            self.active_environment_id = None
        elif event in (AuthEvent.SIGNED_IN, AuthEvent.TOKEN_REFRESHED):
            self.user_id = user_id

    def bind(self, channel: AuthEventChannel):
        self.close()
        self._subscription = channel.subscribe(self.on_auth_event)

    def close(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
