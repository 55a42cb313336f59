"""
Subscriptions - Listener registry with cancellation handles.

Every registration returns a Subscription; calling cancel() on it removes
the listener. Emitting snapshots the listener list, so a listener may
cancel itself (or others) while being called.
"""

from typing import Any, Callable

from loguru import logger


class Subscription:
    """Handle returned by SubscriptionRegistry.add()."""

    def __init__(self, registry: "SubscriptionRegistry", callback: Callable):
        self._registry = registry
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if self.active:
            self.active = False
            self._registry._remove(self)


class SubscriptionRegistry:
    """Ordered set of listeners for one kind of event."""

    def __init__(self, name: str = "changed"):
        self.name = name
        self._subscriptions: list[Subscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    def add(self, callback: Callable) -> Subscription:
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def emit(self, *args: Any) -> None:
        """
        Call every active listener with `args`.

        A failing listener is logged and does not stop the others.
        """
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.callback(*args)
            except Exception:
                logger.exception(f"Listener for '{self.name}' failed")

    def clear(self) -> None:
        """Cancel all subscriptions."""
        for subscription in list(self._subscriptions):
            subscription.cancel()
