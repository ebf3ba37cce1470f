"""
Request Validator

Admission checks for ``POST /relay``. A request that fails any check is
answered with 400 immediately and never reaches the submission queue.

Checks run in a fixed order and stop at the first failure:
    1. proof shape
    2. the six withdrawal arguments
    3. contract is a served mixer instance
    4. no refund on native-asset instances
    5. relayer argument is this relayer
"""

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from ..adapters.evm.verifies import is_valid_proof, parse_withdraw_args
from ..config import RelayerConfig
from ..engine.exceptions import RequestValidationError
from ..schemas.https import (
    PROOF_INVALID,
    ARGS_INVALID,
    CONTRACT_UNSUPPORTED,
    REFUND_NOT_ALLOWED,
    RELAYER_MISMATCH,
)
from ..schemas.jobs import WithdrawRequest

logger = logging.getLogger(__name__)


class ValidationResult(BaseModel):
    """Outcome of admission: ``request`` is set only when ``valid``."""
    valid: bool
    reason: Optional[str] = None
    request: Optional[WithdrawRequest] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class RequestValidator:
    """
    Turns a raw relay body into a ``WithdrawRequest`` or a rejection reason.

    Args:
        config: Relayer configuration (mixer table, native currency).
        relayer_address: Account this relayer signs with.
    """

    def __init__(self, config: RelayerConfig, relayer_address: str) -> None:
        self.config = config
        self.relayer_address = relayer_address

    def validate(self, body: Any) -> ValidationResult:
        try:
            request = self.parse(body)
        except RequestValidationError as e:
            logger.info("Relay request rejected: %s (%s)", e.reason, e.detail or "no detail")
            return ValidationResult(valid=False, reason=e.reason)
        return ValidationResult(valid=True, request=request)

    def parse(self, body: Any) -> WithdrawRequest:
        """
        Run every check against ``body``.

        Raises:
            RequestValidationError: On the first failing check.
        """
        if not isinstance(body, dict):
            raise RequestValidationError(ARGS_INVALID, f"body must be an object, got {type(body).__name__}")

        proof = body.get("proof")
        ok, detail = is_valid_proof(proof)
        if not ok:
            raise RequestValidationError(PROOF_INVALID, detail)

        withdraw_args, detail = parse_withdraw_args(body.get("args"))
        if withdraw_args is None:
            raise RequestValidationError(ARGS_INVALID, detail)

        contract = body.get("contract")
        instance = self.config.find_instance(contract)
        if instance is None:
            raise RequestValidationError(CONTRACT_UNSUPPORTED, f"unknown instance {contract!r}")

        if instance.currency == self.config.native_currency and withdraw_args.refund != 0:
            raise RequestValidationError(REFUND_NOT_ALLOWED, f"refund={withdraw_args.refund}")

        if withdraw_args.relayer.lower() != self.relayer_address.lower():
            raise RequestValidationError(RELAYER_MISMATCH, f"relayer={withdraw_args.relayer}")

        return WithdrawRequest(
            proof=proof.lower(),
            withdraw_args=withdraw_args,
            contract=instance.address,
            currency=instance.currency,
            amount=instance.amount,
        )
