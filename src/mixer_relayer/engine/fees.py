"""
Fee Arbiter

Decides whether the fee stated in a withdrawal covers what relaying it costs
the operator. Pure functions only: everything the decision depends on is
passed in, so the same inputs always give the same answer.

Cost model
----------
``expense``      gas limit × fast gas price (wei)
``fee_percent``  service fee, ``service_fee_percent`` of the withdrawn amount,
                 in the smallest unit of the withdrawn currency
native asset     desired = expense + fee_percent
tokens           desired = (expense + refund) converted to token units at the
                 quoted token price, + fee_percent

The stated fee must be ``>= desired``.
"""

from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Mapping, Optional, Union

from pydantic import Field
from web3 import Web3

from ..schemas.bases import CanonicalModel
from ..schemas.https import FEE_TOO_LOW

Number = Union[int, str, Decimal]


class FeeDecision(CanonicalModel):
    """
    Result of the fee check.

    Attributes:
        is_enough: Whether the stated fee covers the desired fee.
        reason: Caller-facing explanation when it does not.
        desired_fee: Minimum acceptable fee, in smallest units of the currency.
    """
    is_enough: bool = Field(..., description="Fee covers cost plus service margin")
    reason: Optional[str] = Field(None, description="Why the fee was rejected")
    desired_fee: int = Field(0, ge=0, description="Minimum acceptable fee")


def gas_expense(gas: int, fast_gas_price_gwei: Number) -> int:
    """Cost in wei of ``gas`` units at the fast gas price."""
    return int(gas) * int(Web3.to_wei(Decimal(str(fast_gas_price_gwei)), "gwei"))


def service_fee(amount: Number, decimals: int, service_fee_percent: Number) -> int:
    """Service margin in smallest units, floored to an integer."""
    scaled = Decimal(str(amount)) * (Decimal(10) ** decimals)
    percent = scaled * Decimal(str(service_fee_percent)) / Decimal(100)
    return int(percent.to_integral_value(rounding=ROUND_FLOOR))


def is_enough_fee(
    *,
    gas: int,
    gas_prices: Mapping[str, Number],
    currency: str,
    amount: Number,
    refund: int,
    eth_prices: Mapping[str, Number],
    fee: int,
    decimals: int,
    service_fee_percent: Number,
    native_currency: str = "eth",
) -> FeeDecision:
    """
    Check that ``fee`` covers gas, refund and the service margin.

    Args:
        gas: Gas limit the transaction will be sent with.
        gas_prices: Gas price quotes in gwei; the ``fast`` quote is used.
        currency: Lowercase currency of the mixer instance.
        amount: Instance denomination in whole units (e.g. ``"0.1"``).
        refund: Wei the relayer forwards to the recipient (tokens only).
        eth_prices: Price of one whole token in wei, keyed by currency.
        fee: Fee stated in the withdrawal, smallest units of ``currency``.
        decimals: Decimals of ``currency``.
        service_fee_percent: Relayer margin in percent of ``amount``.
        native_currency: Symbol of the chain's native asset.

    Returns:
        FeeDecision: ``is_enough`` with the desired fee, or a reason.
    """
    fast = gas_prices.get("fast")
    if fast is None:
        return FeeDecision(is_enough=False, reason="Gas price quote is unavailable")

    try:
        expense = gas_expense(gas, fast)
        fee_percent = service_fee(amount, decimals, service_fee_percent)
    except (InvalidOperation, ValueError) as e:
        return FeeDecision(is_enough=False, reason=f"Cannot compute relayer fee: {e}")

    if currency == native_currency:
        desired_fee = expense + fee_percent
    else:
        price = eth_prices.get(currency)
        if price is None or int(Decimal(str(price))) <= 0:
            return FeeDecision(is_enough=False, reason=f"Price quote for {currency} is unavailable")
        desired_fee = (expense + int(refund)) * (10 ** decimals) // int(Decimal(str(price)))
        desired_fee += fee_percent

    if int(fee) < desired_fee:
        return FeeDecision(is_enough=False, reason=FEE_TOO_LOW, desired_fee=desired_fee)

    return FeeDecision(is_enough=True, desired_fee=desired_fee)
