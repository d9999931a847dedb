from typing import Callable, Iterable, List

from switchboard.logging_config import get_logger
from switchboard.models.events import OutboundEvent

logger = get_logger("events")

Listener = Callable[[OutboundEvent], None]


class EventBus:
    """Fan-out of outbound events to transport listeners.

    Callers publish only after the state change behind the events has been
    written to the FlowStateStore.
    """

    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, events: Iterable[OutboundEvent]) -> None:
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception as e:
                    logger.error(
                        f"Event listener failed: {e}",
                        exc_info=True,
                        extra={"context": {"event": event.type.value, "conversation_id": event.conversation_id}},
                    )
