"""
Base Schema Models for the Mixer Relayer

This module defines the base model every other schema inherits from, plus the
small enumerations shared across the relay pipeline.

Core Classes:
    - CanonicalModel: Pydantic base model with deterministic JSON serialization
    - JobState: Lifecycle states of a queued withdrawal job
    - OutcomeStatus: HTTP status codes a job may terminate with

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    The canonical form (sorted keys, no whitespace) is what the durable job
    store writes, so two processes serialising the same job produce the same
    bytes.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        ``model_dump(mode="json")`` turns enums, datetimes and nested models
        into plain JSON types; ``json.dumps`` with sorted keys and compact
        separators makes the output deterministic.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json", by_alias=True)
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )


class JobState(str, Enum):
    """
    Lifecycle of a withdrawal job.

    Attributes:
        CREATED: Enqueued and persisted, waiting for the worker
        ACTIVE: Dequeued by the single worker and being processed
        COMPLETED: Reached a terminal outcome and removed from the queue
    """
    CREATED = "created"
    ACTIVE = "active"
    COMPLETED = "completed"


class OutcomeStatus(IntEnum):
    """HTTP status codes a relay request can terminate with."""
    OK = 200
    BAD_REQUEST = 400
