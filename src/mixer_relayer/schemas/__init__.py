from .bases import CanonicalModel, JobState, OutcomeStatus
from .jobs import WithdrawArgs, WithdrawRequest, JobOutcome, Job, RelayTransaction
from .prices import PriceSnapshot
from .https import RelaySuccessResponse, RelayErrorResponse, StatusResponse

__all__ = [
    "CanonicalModel",
    "JobState",
    "OutcomeStatus",
    "WithdrawArgs",
    "WithdrawRequest",
    "JobOutcome",
    "Job",
    "RelayTransaction",
    "PriceSnapshot",
    "RelaySuccessResponse",
    "RelayErrorResponse",
    "StatusResponse",
]
