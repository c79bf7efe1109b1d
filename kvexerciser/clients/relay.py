"""
Event Relay

Forwards change notifications from cache handles to the presentation
layer, tagged with the name of the client whose handle raised them.

Each forward is an EventBinding record stored on the handle as a
listener. The relay itself keeps nothing but the sink; which kinds
actually flow is decided by the handle's subscribe_events() scope.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, List

from ..cache.base import ALL_EVENT_KINDS, CacheHandle, EventKind


@dataclass(frozen=True)
class Notification:
    """A change notification as seen by the presentation layer."""
    kind: EventKind
    key: str
    client_name: str


NotificationSink = Callable[[Notification], None]


@dataclass(frozen=True)
class EventBinding:
    """Listener record: forwards one event kind of one client to a sink."""
    client_name: str
    kind: EventKind
    sink: NotificationSink

    def __call__(self, kind: EventKind, key: str) -> None:
        self.sink(Notification(kind=kind, key=key, client_name=self.client_name))


class EventRelay:
    """
    Attaches forwarding bindings to cache handles.

    Usage:
        relay = EventRelay(print)
        relay.attach(handle, "Default")
        handle.subscribe_events([EventKind.ADDED])
    """

    def __init__(self, sink: NotificationSink):
        self.sink = sink

    def attach(
            self,
            handle: CacheHandle,
            client_name: str,
            kinds: Iterable[EventKind] = ALL_EVENT_KINDS,
    ) -> List[EventBinding]:
        """Register one binding per event kind on the handle."""
        bindings = [EventBinding(client_name, kind, self.sink) for kind in kinds]
        for binding in bindings:
            handle.add_listener(binding.kind, binding)
        return bindings

    @staticmethod
    def detach(handle: CacheHandle, bindings: Iterable[EventBinding]) -> None:
        for binding in bindings:
            handle.remove_listener(binding.kind, binding)
