"""
Event chain execution engine.

Provides workflow orchestration on top of EventBus, processing events
recursively until a handler returns nothing or the terminal event is reached.
"""

from typing import AsyncGenerator

from .events import BaseEvent, EventBus, Dependencies


class EventChain:
    """Executes event-driven workflows by chaining event handler results.

    Events are processed one after another in the caller's task: the
    next stage only starts once the previous handler returned, which is what
    keeps a job's RPC calls and nonce updates strictly ordered.
    """

    def __init__(
        self,
        event_bus: EventBus,
        deps: Dependencies,
    ) -> None:
        """
        Initialize event chain executor.

        Args:
            event_bus: The event bus to dispatch events through.
            deps: Dependencies container to pass to handlers.
        """
        self.event_bus = event_bus
        self.deps = deps

    async def execute(self, initial_event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Execute event chain starting from initial event.

        Yields:
            Every event produced by the handlers, in the order produced.
        """
        async for event in self._process_event(initial_event):
            yield event

    async def _process_event(self, event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        async for result in self.event_bus.dispatch(event, self.deps):
            if result is None:
                continue
            if not isinstance(result, BaseEvent):
                raise TypeError(f"Handler returned unsupported type: {type(result).__name__}")
            yield result
            async for e in self._process_event(result):
                yield e
