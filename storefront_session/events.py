"""
Process-wide notification bus.

Decouples the auth, cart and UI-facing collaborators. Publishing is
synchronous: every subscriber registered at publish time runs, in
registration order, before publish() returns. There is no backlog, so a
subscriber added after an event fired never sees it.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Event(str, Enum):
    """Bus event names. The string values are the names UI collaborators bind to."""
    LOGIN_REQUIRED = "login-required"
    LOGIN_COMPLETED = "login-completed"
    LOGOUT_COMPLETED = "logout-completed"


@dataclass(frozen=True)
class LoginRequired:
    """Ask the UI to show a login prompt without navigating away."""
    message: str = "Please login to continue"
    redirect_url: str = "/"


@dataclass(frozen=True)
class LogoutCompleted:
    reset_counters: bool = True


Handler = Callable[[Any], None]
Disposer = Callable[[], None]


@dataclass(eq=False)
class _Subscription:
    """One registration. Compared by identity so a handler can be registered twice."""
    handler: Handler


class NotificationBus:
    """Named-event publish/subscribe with disposable subscriptions."""

    def __init__(self):
        self._subscribers: dict[Event, list[_Subscription]] = {event: [] for event in Event}

    def subscribe(self, event: Event, handler: Handler) -> Disposer:
        """Register a handler. Call the returned disposer on teardown."""
        subscription = _Subscription(handler)
        self._subscribers[event].append(subscription)

        def dispose() -> None:
            subscriptions = self._subscribers[event]
            if subscription in subscriptions:
                subscriptions.remove(subscription)

        return dispose

    def publish(self, event: Event, payload: Any = None) -> int:
        """Deliver to current subscribers. Returns how many were called."""
        subscriptions = list(self._subscribers[event])
        logger.debug("Publishing %s to %d subscriber(s)", event.value, len(subscriptions))
        for subscription in subscriptions:
            try:
                subscription.handler(payload)
            except Exception:
                logger.exception("Subscriber for %s failed", event.value)
        return len(subscriptions)

    def subscriber_count(self, event: Event) -> int:
        return len(self._subscribers[event])
