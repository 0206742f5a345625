"""
Listener registry for boundary notifications.

Holds one ordered, copy-on-write tuple of subscriptions per BoundaryKind.
Dispatch iterates over a snapshot, so listeners may subscribe or unsubscribe
(including themselves) while a notification is in progress.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Awaitable, Callable, Optional, Union

from timebeat.core.types import BoundaryEvent, BoundaryKind

logger = logging.getLogger(__name__)

Handler = Callable[[BoundaryEvent], Union[Awaitable[None], None]]


class Subscription:
    """
    Handle returned by subscribe().

    Cancelling is idempotent. A cancelled subscription is skipped even if it
    is part of a snapshot that is currently being dispatched.
    """

    __slots__ = ("_registry", "kind", "handler", "id", "_active")

    def __init__(
        self,
        registry: ListenerRegistry,
        kind: BoundaryKind,
        handler: Handler,
        sub_id: int,
    ) -> None:
        self._registry = registry
        self.kind = kind
        self.handler = handler
        self.id = sub_id
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> bool:
        """Remove this subscription. Returns False if it was already removed."""
        return self._registry.remove(self)

    def __repr__(self) -> str:
        name = getattr(self.handler, "__qualname__", repr(self.handler))
        return f"Subscription(id={self.id}, kind={self.kind.value}, handler={name}, active={self._active})"


class ListenerRegistry:
    """Ordered listener lists per boundary kind, safe to mutate during dispatch."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[BoundaryKind, tuple[Subscription, ...]] = {
            kind: () for kind in BoundaryKind
        }
        self._ids = itertools.count(1)

    def add(self, kind: BoundaryKind, handler: Handler) -> Subscription:
        """
        Register a handler for a boundary kind.

        Multiple handlers can be registered for the same kind.
        They will be called in registration order.
        """
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")
        kind = BoundaryKind(kind)
        with self._lock:
            sub = Subscription(self, kind, handler, next(self._ids))
            self._listeners[kind] = self._listeners[kind] + (sub,)
        logger.debug(f"Registered listener {sub.id} for {kind.value}")
        return sub

    def remove(self, sub: Subscription) -> bool:
        """Deactivate and drop a subscription. Returns False if it is not registered here."""
        if sub._registry is not self:
            return False
        with self._lock:
            current = self._listeners[sub.kind]
            if sub not in current:
                sub._active = False
                return False
            self._listeners[sub.kind] = tuple(s for s in current if s is not sub)
            sub._active = False
        logger.debug(f"Removed listener {sub.id} for {sub.kind.value}")
        return True

    def snapshot(self, kind: BoundaryKind) -> tuple[Subscription, ...]:
        # tuples are replaced, never mutated; reading the reference is enough
        return self._listeners[kind]

    def count(self, kind: Optional[BoundaryKind] = None) -> int:
        if kind is None:
            return sum(len(subs) for subs in self._listeners.values())
        return len(self._listeners[BoundaryKind(kind)])

    def clear(self) -> None:
        """Remove all listeners."""
        with self._lock:
            for subs in self._listeners.values():
                for sub in subs:
                    sub._active = False
            self._listeners = {kind: () for kind in BoundaryKind}
