"""Holder of the latest price snapshot.

Polling gas stations and price oracles happens outside the relayer; whatever
does it calls ``update``. The pipeline only ever reads ``snapshot()``.
"""

import logging
from typing import Optional

from ..schemas.prices import PriceSnapshot

logger = logging.getLogger(__name__)


class PriceFeed:

    def __init__(self, initial: Optional[PriceSnapshot] = None) -> None:
        self._snapshot = initial or PriceSnapshot()

    def snapshot(self) -> PriceSnapshot:
        return self._snapshot

    def update(self, snapshot: PriceSnapshot) -> None:
        logger.debug("Price snapshot updated: gas=%s eth=%s", snapshot.gas_prices, snapshot.eth_prices)
        self._snapshot = snapshot
