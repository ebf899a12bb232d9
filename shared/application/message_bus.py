"""
Message Bus

Reservation commands (reserve, cancel, confirm, expire) enter the engine
here and reach exactly one handler. Committed domain events leave through
here and reach every subscriber of their type.
"""

from collections import defaultdict
from typing import Any, Callable, Dict, List, Type
import logging

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]
CommandHandler = Callable[[Any], Any]


class MessageBus:
    """In-process dispatcher: one handler per command type, many per event type"""

    def __init__(self):
        self._subscribers: Dict[Type[DomainEvent], List[EventHandler]] = defaultdict(list)
        self._handlers: Dict[Type, CommandHandler] = {}

    def register_event_handler(self, event_type: Type[DomainEvent], handler: EventHandler):
        """Subscribe a handler to an event type; subscribing twice is a no-op"""
        subscribers = self._subscribers[event_type]
        if handler in subscribers:
            return
        subscribers.append(handler)
        logger.debug(f"{event_type.__name__}: {len(subscribers)} subscriber(s)")

    def register_command_handler(self, command_type: Type, handler: CommandHandler, replace: bool = False):
        """
        Bind the handler of a command type

        A second binding is a programming error unless replace=True, which
        is how the engine is rebound to another store.
        """
        if not replace and command_type in self._handlers:
            raise ValueError(f"{command_type.__name__} already has a handler")
        self._handlers[command_type] = handler
        logger.debug(f"{command_type.__name__} bound to {getattr(handler, '__qualname__', handler)}")

    def handle_command(self, command: Any) -> Any:
        """Run the bound handler and return its result; LookupError if unbound"""
        try:
            handler = self._handlers[type(command)]
        except KeyError:
            raise LookupError(f"No handler bound for {type(command).__name__}") from None
        return handler(command)

    def publish_events(self, events: List[DomainEvent]):
        """
        Deliver events to their subscribers in order

        A failing subscriber is logged and skipped; the remaining
        subscribers and events are still delivered.
        """
        for event in events:
            name = type(event).__name__
            subscribers = self._subscribers.get(type(event), ())
            if not subscribers:
                logger.debug(f"{name} {event.event_id}: no subscribers")
                continue

            for subscriber in subscribers:
                try:
                    subscriber(event)
                except Exception as e:
                    logger.error(
                        f"Subscriber {getattr(subscriber, '__name__', subscriber)} failed on {name} {event.event_id}: {e}",
                        exc_info=True,
                    )

    def reset(self):
        """Forget every binding and subscription"""
        self._subscribers.clear()
        self._handlers.clear()


# Process-wide bus used by the API, the Celery tasks and app signals
message_bus = MessageBus()
