"""Price quote snapshot consumed by the fee check."""

from datetime import datetime
from decimal import Decimal
from typing import Dict

from pydantic import Field

from .bases import CanonicalModel


class PriceSnapshot(CanonicalModel):
    """
    Latest gas and asset price quotes.

    Attributes:
        gas_prices: Gas prices in gwei keyed by speed (``fast``, ``standard``, ...).
        eth_prices: Price of one whole token in wei, keyed by lowercase currency.
        updated_at: When the snapshot was taken.
    """
    gas_prices: Dict[str, Decimal] = Field(default_factory=dict, description="Gas prices in gwei")
    eth_prices: Dict[str, int] = Field(default_factory=dict, description="Token prices in wei")
    updated_at: datetime = Field(default_factory=datetime.now, description="Snapshot timestamp")
