"""Domain events recorded by the repository and published after commit."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, List, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemsChanged:
    requirement_id: int
    change: str  # "created" | "updated" | "deleted"


@dataclass(frozen=True)
class ApprovalAdded:
    requirement_id: int
    approval_id: int
    round: int


@dataclass(frozen=True)
class StatusChanged:
    requirement_id: int
    from_status: str
    to_status: str


class EventBus:
    """Synchronous publisher: handlers run in subscription order.

    A handler is called as ``handler(event, repository)`` so it can open its
    own batch on the same session. Handler errors propagate to the caller.
    """

    def __init__(self):
        self._handlers: DefaultDict[type, List[Callable]] = defaultdict(list)

    def subscribe(self, event_type: Type, handler: Callable) -> None:
        self._handlers[event_type].append(handler)

    def handlers_for(self, event_type: Type) -> List[Callable]:
        return list(self._handlers.get(event_type, []))

    def publish(self, event, repository) -> None:
        handlers = self.handlers_for(type(event))
        logger.debug("Publishing %s to %d handler(s)", event, len(handlers))
        for handler in handlers:
            handler(event, repository)
