"""
Withdrawal Relayer Server - Event-driven FastAPI wrapper.

Exposes the relay endpoint and wires admission, the submission queue and the
transaction submitter together.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from ..adapters.bases import ChainAdapter
from ..config import RelayerConfig
from ..engine.dispatcher import ResponseDispatcher
from ..engine.events import EventBus, Dependencies, BaseEvent
from ..engine.exceptions import BlockchainInteractionError, StoreError
from ..engine.flows import setup_event_bus, WithdrawalProcessor
from ..engine.nonces import NonceCoordinator
from ..engine.prices import PriceFeed
from ..engine.queues import SubmissionQueue
from ..schemas.https import INTERNAL_ERROR, RelayErrorResponse, RelaySuccessResponse, StatusResponse
from ..schemas.prices import PriceSnapshot
from ..stores import NonceStore, JobStore, create_stores
from .validators import RequestValidator

logger = logging.getLogger(__name__)


class RelayerServer(FastAPI):
    """FastAPI server relaying mixer withdrawals."""

    def __init__(
        self,
        config: RelayerConfig,
        chain: ChainAdapter,
        nonce_store: Optional[NonceStore] = None,
        job_store: Optional[JobStore] = None,
        price_feed: Optional[PriceFeed] = None,
        **fastapi_kwargs
    ):
        """Initialize the relayer server.

        Args:
            config: Resolved relayer settings
            chain: Chain adapter signing with the relayer account
            nonce_store: Nonce counter backend (default: from ``config.redis_url``)
            job_store: Job queue backend (default: from ``config.redis_url``)
            price_feed: Price snapshot holder (default: seeded from ``config``)
            **fastapi_kwargs: FastAPI arguments (title, version, etc.)
        """
        if nonce_store is None or job_store is None:
            default_nonce_store, default_job_store = create_stores(config.redis_url, config.store_prefix)
            nonce_store = nonce_store or default_nonce_store
            job_store = job_store or default_job_store

        self.config = config
        self.chain = chain
        self.prices = price_feed or PriceFeed(PriceSnapshot(
            gas_prices=config.gas_prices,
            eth_prices=config.eth_prices,
        ))
        self.nonces = NonceCoordinator(nonce_store, key=config.nonce_key)
        self.depends = Dependencies(
            chain=chain,
            nonces=self.nonces,
            prices=self.prices,
            config=config,
        )
        self.event_bus: EventBus = setup_event_bus()
        self.dispatcher = ResponseDispatcher()
        self.queue = SubmissionQueue(
            job_store,
            WithdrawalProcessor(self.event_bus, self.depends),
            self.dispatcher,
        )
        self.validator = RequestValidator(config, chain.wallet_address)

        fastapi_kwargs.setdefault("title", "Mixer Relayer")
        fastapi_kwargs.setdefault("version", config.version)
        super().__init__(lifespan=self._lifespan, **fastapi_kwargs)

        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.startup()
        try:
            yield
        finally:
            await self.shutdown()

    async def startup(self) -> None:
        """Sync the nonce counter with the chain and start the worker."""
        try:
            chain_nonce = await self.chain.get_transaction_count(self.chain.wallet_address)
        except BlockchainInteractionError:
            logger.exception("Could not read the relayer's pending nonce; keeping the stored counter")
        else:
            await self.nonces.sync(chain_nonce)
        await self.queue.start()
        logger.info("Relayer %s serving net id %s", self.chain.wallet_address, self.config.net_id)

    async def shutdown(self) -> None:
        await self.queue.stop()

    def subscribe(self, event_class: type[BaseEvent], handler: Callable) -> None:
        """Register a pipeline handler for an event nothing handles yet.

        Subscribers of one event run in parallel, so a second handler on a
        stage event would run that stage twice (a second broadcast, for
        ``TransactionBuiltEvent``). Use ``add_hook`` for side effects.

        Args:
            event_class: Event type to handle
            handler: Async function(event, deps) -> Optional[BaseEvent]

        Raises:
            ValueError: If ``event_class`` already has a handler.
        """
        if self.event_bus.has_subscribers(event_class):
            raise ValueError(f"{event_class.__name__} already has a handler")
        self.event_bus.subscribe(event_class, handler)

    def add_hook(self, event_class: type[BaseEvent], hook: Callable) -> None:
        """Register event hook for side effects.

        Example:
            ```python
            async def audit(event, deps):
                logger.info("Relayed %s", event.outcome.tx_hash)

            app.add_hook(JobCompletedEvent, audit)
            ```
        """
        self.event_bus.hook(event_class, hook)

    def hook(self, event_class: type[BaseEvent]) -> Callable:
        """Decorator for registering event hooks.

        Example:
            @app.hook(TransactionBuiltEvent)
            async def on_built(event, deps):
                ...
        """
        def decorator(hook_func: Callable) -> Callable:
            self.event_bus.hook(event_class, hook_func)
            return hook_func
        return decorator

    def _error(self, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=RelayErrorResponse(error=message).model_dump()
        )

    def _setup_routes(self) -> None:

        @self.post("/relay")
        async def relay(request: Request):
            """Validate, queue and wait for the withdrawal's outcome."""
            try:
                body = await request.json()
            except ValueError:
                body = None

            result = self.validator.validate(body)
            if not result.valid:
                return self._error(result.reason)

            try:
                job, future = await self.queue.submit(result.request)
            except StoreError:
                logger.exception("Could not enqueue relay request")
                return self._error(INTERNAL_ERROR)

            try:
                outcome = await future
            except asyncio.CancelledError:
                self.dispatcher.discard(job.id)
                raise

            if not outcome.is_success():
                return self._error(outcome.error)
            return RelaySuccessResponse(txHash=outcome.tx_hash).model_dump()

        @self.get("/status")
        async def status():
            """Public relayer parameters and queue depth."""
            snapshot = self.prices.snapshot()
            return StatusResponse(
                relayerAddress=self.chain.wallet_address,
                netId=self.config.net_id,
                mixers=self.config.public_mixers(),
                gasPrices={k: str(v) for k, v in snapshot.gas_prices.items()},
                ethPrices={k: str(v) for k, v in snapshot.eth_prices.items()},
                relayerServiceFee=str(self.config.relayer_service_fee),
                queueSize=await self.queue.size(),
                version=self.config.version,
                supportedCurrencies=sorted(self.config.mixers),
            ).model_dump()

        @self.get("/", response_class=PlainTextResponse)
        async def index():
            return "This is a mixer relayer service. Check /status for settings"
