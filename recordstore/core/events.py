"""
Lifecycle notifications emitted by a collection.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Protocol, Union, runtime_checkable

from ..utils.logging import get_logger


logger = get_logger("recordstore.core.events")


class StoreEvent(str, Enum):
    """Names of the events a collection emits."""
    
    RECORD_DUPLICATE = "record.duplicate"
    RECORD_CREATE = "record.create"
    RECORD_UPDATE = "record.update"
    RECORD_DELETE = "record.delete"
    CLEAR = "clear"
    FILTER_CREATE = "filter.create"
    FILTER_DELETE = "filter.delete"
    INDEX_CREATE = "index.create"
    INDEX_DELETE = "index.delete"
    LOAD = "load"
    RELOAD = "reload"


Handler = Callable[[Any], None]
EventName = Union[StoreEvent, str]


@runtime_checkable
class EventSink(Protocol):
    """Anything a collection can hand its notifications to."""
    
    def emit(self, event: StoreEvent, payload: Any = None) -> None:
        ...


class EventEmitter:
    """
    Per-collection observer list.
    
    Handlers run synchronously, in registration order, on the thread that
    triggered the event. A failing handler is logged and skipped so the
    remaining handlers still see the event.
    """
    
    def __init__(self) -> None:
        self._handlers: Dict[StoreEvent, List[Handler]] = {}
    
    def on(self, event: EventName, handler: Handler) -> None:
        """Subscribe to an event."""
        event = StoreEvent(event)
        self._handlers.setdefault(event, []).append(handler)
    
    def once(self, event: EventName, handler: Handler) -> None:
        """Subscribe to the next occurrence of an event only."""
        event = StoreEvent(event)
        
        def wrapper(payload: Any) -> None:
            self.off(event, wrapper)
            handler(payload)
        
        self.on(event, wrapper)
    
    def off(self, event: EventName, handler: Handler) -> None:
        """Unsubscribe from an event."""
        event = StoreEvent(event)
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)
    
    def listeners(self, event: EventName) -> List[Handler]:
        return list(self._handlers.get(StoreEvent(event), []))
    
    def emit(self, event: EventName, payload: Any = None) -> None:
        """Deliver an event to its subscribers."""
        event = StoreEvent(event)
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s failed", event.value)
    
    def clear(self) -> None:
        """Remove all subscribers."""
        self._handlers.clear()
