"""Events subsystem carrying problem lifecycle notifications."""
from problem_search.events.bus import EventBus
from problem_search.events.types import DomainEvent, EventType

__all__ = [
    "DomainEvent",
    "EventBus",
    "EventType",
]
