"""
Event-driven withdrawal pipeline with typed events and clear data flow.

Each stage of relaying a job is an event carrying the job and whatever the
previous stage produced; handlers return the next event, and dependencies are
injected separately from business data.

Stage events:
    JobStartedEvent → NoteUnspentEvent → RootKnownEvent → GasEstimatedEvent
    → FeeAcceptedEvent → TransactionBuiltEvent (repeated on nonce conflicts)
    → JobCompletedEvent

``JobCompletedEvent`` is terminal: nothing subscribes to it, so the chain
stops there. Each stage event has a single subscriber; hooks observe events
for side effects and cannot change or stop the chain.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Callable, Optional, Awaitable, AsyncGenerator

from pydantic import BaseModel, ConfigDict, Field

from ..adapters.bases import ChainAdapter
from ..config import RelayerConfig
from ..schemas.jobs import Job, JobOutcome, RelayTransaction
from .nonces import NonceCoordinator
from .prices import PriceFeed

logger = logging.getLogger(__name__)

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


class JobEvent(BaseModel, BaseEvent):
    """Stage event bound to the job being processed."""
    job: Job

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(job={self.job.id})"


# ==================== Stage Events ====================

class JobStartedEvent(JobEvent):
    """Trigger: the worker picked the job up."""


class NoteUnspentEvent(JobEvent):
    """The nullifier hash has not been withdrawn yet."""


class RootKnownEvent(JobEvent):
    """The proof's merkle root is in the contract's recent history."""


class GasEstimatedEvent(JobEvent):
    """Gas limit to send with, estimate plus the configured margin."""
    gas: int = Field(..., ge=0)

    def __repr__(self) -> str:
        return f"GasEstimatedEvent(job={self.job.id}, gas={self.gas})"


class FeeAcceptedEvent(JobEvent):
    """The stated fee covers the relaying cost at ``gas_price`` (wei)."""
    gas: int = Field(..., ge=0)
    gas_price: int = Field(..., ge=0)

    def __repr__(self) -> str:
        return f"FeeAcceptedEvent(job={self.job.id}, gas={self.gas}, gas_price={self.gas_price})"


class TransactionBuiltEvent(JobEvent):
    """A transaction ready for broadcast; ``attempt`` counts broadcasts, from 1."""
    tx: RelayTransaction
    attempt: int = Field(default=1, ge=1)

    def __repr__(self) -> str:
        return f"TransactionBuiltEvent(job={self.job.id}, nonce={self.tx.nonce}, attempt={self.attempt})"


# ==================== Terminal Event ====================

class JobCompletedEvent(BaseModel, BaseEvent):
    """Result: the job reached its terminal outcome at ``stage``."""
    job_id: str
    outcome: JobOutcome
    stage: str = ""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"JobCompletedEvent(job={self.job_id}, status={int(self.outcome.status)}, stage={self.stage})"


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    chain: ChainAdapter
    nonces: NonceCoordinator
    prices: PriceFeed
    config: RelayerConfig


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[BaseEvent]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        self._subscribers: Dict[type, list[EventHandlerFunc]] = {}
        self._hooks: Dict[type, list[EventHookFunc]] = {}

    def subscribe(self, event_class: type[BaseEvent], handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.

        Args:
            event_class: The event class to subscribe to.
            handler: Coroutine function returning the next event (or None).

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        self._subscribers.setdefault(event_class, []).append(handler)

    def hook(self, event_class: type[BaseEvent], hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks run before subscribers and their return value is ignored.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")

        self._hooks.setdefault(event_class, []).append(hook_func)

    def has_subscribers(self, event_class: type[BaseEvent]) -> bool:
        return bool(self._subscribers.get(event_class))

    async def dispatch(self, event: BaseEvent, deps: Dependencies) -> AsyncGenerator[Optional[BaseEvent], None]:
        """
        Dispatch an event to all registered hooks and subscribers.

        A failing hook is logged and does not stop the event or the other hooks.

        Args:
            event: The event to dispatch.
            deps: Dependencies container with injected services.

        Yields:
            Results from subscribers as they complete. Yields nothing if no
            subscribers are registered.
        """
        hooks = self._hooks.get(type(event), [])
        results = await asyncio.gather(*(hook(event, deps) for hook in hooks), return_exceptions=True)
        for hook, result in zip(hooks, results):
            if isinstance(result, Exception):
                logger.error(
                    "Hook %s failed on %r", getattr(hook, "__name__", hook), event, exc_info=result
                )

        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            return

        tasks = [handler(event, deps) for handler in handlers]
        for coro in asyncio.as_completed(tasks):
            yield await coro
