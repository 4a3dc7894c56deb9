"""Event bus contracts.

Events are published only after the backend has confirmed the mutation
that produced them, so a subscriber never sees an unconfirmed change.
"""

from __future__ import annotations

from typing import Generic, Protocol, Type, TypeVar

from shared.domain.events import DomainEvent

EventT = TypeVar("EventT", bound=DomainEvent, contravariant=True)


class IEventHandler(Protocol, Generic[EventT]):
    """Reacts to one kind of confirmed domain event."""

    def handle(self, event: EventT) -> None: ...


class IEventBus(Protocol):
    """Routes a confirmed event to the handlers subscribed to its class.

    ``publish`` must not raise because of a handler: the mutation it
    reports is already committed.
    """

    def subscribe(
        self, event_class: Type[EventT], handler: IEventHandler[EventT]
    ) -> None: ...

    def publish(self, event: DomainEvent) -> None: ...
