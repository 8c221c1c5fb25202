"""Deduplicated listener registration with bulk teardown."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Protocol


logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], None]


class EventTarget(Protocol):
    """Anything listeners can be attached to (the hosted document, a window...)."""

    def add_event_listener(self, event_name: str, handler: Handler, options: Any = None) -> None: ...

    def remove_event_listener(self, event_name: str, handler: Handler, options: Any = None) -> None: ...


@dataclass(frozen=True)
class ListenerBinding:
    """A listener attached to a target."""
    target: Any
    event_name: str
    handler: Handler
    options: Any = None

    @property
    def key(self) -> tuple[int, str, Hashable]:
        return (id(self.target), self.event_name, self.handler)


@dataclass
class EventRegistry:
    """
    Tracks every listener the pipeline attaches so they can all be
    removed in one call.

    A (target, event name, handler) triple is registered at most once.
    Handlers compare by Python equality, so two lookups of the same
    bound method count as the same handler.
    """
    _bindings: dict[tuple, ListenerBinding] = field(default_factory=dict, init=False)

    def add(
        self,
        target: EventTarget,
        event_name: str,
        handler: Handler,
        options: Any = None,
    ) -> bool:
        """
        Register a listener.

        Returns False if the same binding already exists, True otherwise.
        """
        binding = ListenerBinding(target, event_name, handler, options)
        if binding.key in self._bindings:
            return False

        try:
            target.add_event_listener(event_name, handler, options)
        except Exception as e:
            logger.debug(f"add_event_listener failed for {event_name!r}: {e}")

        self._bindings[binding.key] = binding
        return True

    def remove_all(self) -> None:
        """Unregister every tracked listener. Safe to call repeatedly."""
        for binding in self._bindings.values():
            try:
                binding.target.remove_event_listener(
                    binding.event_name, binding.handler, binding.options
                )
            except Exception as e:
                logger.debug(f"remove_event_listener failed for {binding.event_name!r}: {e}")
        self._bindings.clear()

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, item: tuple[Any, str, Handler]) -> bool:
        target, event_name, handler = item
        return (id(target), event_name, handler) in self._bindings


@dataclass
class EventSource:
    """
    In-process dispatch surface standing in for the hosted document.

    Producers call `dispatch` with already-shaped event payloads.
    """
    name: str = "document"

    _listeners: dict[str, list[tuple[Handler, Any]]] = field(default_factory=dict, init=False)

    def add_event_listener(self, event_name: str, handler: Handler, options: Any = None) -> None:
        self._listeners.setdefault(event_name, []).append((handler, options))

    def remove_event_listener(self, event_name: str, handler: Handler, options: Any = None) -> None:
        listeners = self._listeners.get(event_name, [])
        for i, (existing, _) in enumerate(listeners):
            if existing == handler:
                del listeners[i]
                break

    def dispatch(self, event_name: str, event: dict[str, Any] | None = None) -> int:
        """
        Call every listener for `event_name`.

        A failing listener is logged and does not stop the rest.
        Returns the number of listeners called.
        """
        listeners = list(self._listeners.get(event_name, []))
        for handler, _ in listeners:
            try:
                handler(event if event is not None else {})
            except Exception as e:
                logger.error(f"Listener for {event_name!r} on {self.name} failed: {e}")
        return len(listeners)

    def listener_count(self, event_name: str | None = None) -> int:
        if event_name is None:
            return sum(len(v) for v in self._listeners.values())
        return len(self._listeners.get(event_name, []))
