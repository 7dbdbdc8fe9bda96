from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

# Event names emitted by the round controller.
EVT_ROUND_STARTED = "round.started"  # payload: round_number: int, target: Item, required_count: int
EVT_INPUT_ENABLED = "round.input_enabled"  # payload: round_number: int
EVT_SELECTION_CORRECT = "selection.correct"  # payload: slot_index: int, found_count: int, required_count: int
EVT_SELECTION_INCORRECT = "selection.incorrect"  # payload: slot_index: int, item_name: str
EVT_ROUND_COMPLETED = "round.completed"  # payload: round_number: int, mistakes: int
EVT_ROUND_ABORTED = "round.aborted"  # payload: round_number: int, error: ConfigurationError


class EventBus:
    """Lightweight publish/subscribe event bus.

    Lets the HUD, the headless runner and tests observe a round without the
    controller knowing about them. Handlers are called synchronously in
    subscription order.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Callable[..., Any]]] = {}

    def subscribe(self, event: str, handler: Callable[..., Any]) -> None:
        """Subscribe a handler to an event channel.

        Args:
            event: Event channel name.
            handler: Callable that accepts keyword arguments of event payload.
        """
        self._handlers.setdefault(event, [])
        if handler not in self._handlers[event]:
            self._handlers[event].append(handler)
            logger.debug("Subscribed handler %s to event '%s'", handler, event)

    def unsubscribe(self, event: str, handler: Callable[..., Any]) -> None:
        handlers = self._handlers.get(event)
        if not handlers:
            return
        if handler in handlers:
            handlers.remove(handler)
            logger.debug("Unsubscribed handler %s from event '%s'", handler, event)
        if not handlers:
            del self._handlers[event]

    def clear(self) -> None:
        self._handlers.clear()

    def emit(self, event: str, **kwargs: Any) -> List[Any]:
        """Emit an event with payload to all subscribed handlers.

        Returns:
            List of return values from handlers that did not raise.
        """
        handlers = list(self._handlers.get(event, []))
        if not handlers:
            logger.debug("Emitting '%s' with no subscribers. Payload=%s", event, kwargs)
            return []
        logger.debug("Emitting '%s' to %d handlers. Payload=%s", event, len(handlers), kwargs)
        results: List[Any] = []
        for handler in handlers:
            try:
                results.append(handler(**kwargs))
            except Exception as exc:
                logger.exception("Error in handler %s for event '%s': %s", handler, event, exc)
        return results
