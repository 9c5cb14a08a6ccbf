"""
Base Schema Models for filbatch

This module defines the base classes that the other schema models inherit
from. It provides consistent serialization for everything that is signed,
hashed or sent over the wire.

Core Classes:
    - CanonicalModel: RFC8785-style Pydantic base model with canonical JSON output
    - TransactionStatus: Lifecycle status of a submitted message or transaction
    - BatchState: Execution state of a whole batch

Dependencies:
    - pydantic: For data validation and serialization
"""

import json

from enum import Enum

from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    RFC8785-style Pydantic base model with canonical JSON serialization.

    This model ensures consistent, deterministic JSON representation suitable
    for signing payloads and logging.

    Features:
        - Automatic conversion of Pydantic objects and enums to standard types
        - Deterministic key sorting in JSON output
        - No extra whitespace for consistent hashing and signature payloads
        - Field population by either attribute name or wire alias

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        canonical_json = model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to canonical JSON string.

        The conversion process:
        1. model_dump(mode="json", by_alias=True) converts nested models, enums
           and custom-serialized fields to standard Python types
        2. json.dumps with compact separators and sort_keys gives a stable form

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


class TransactionStatus(str, Enum):
    """
    Enumeration of possible transaction statuses.

    Attributes:
        PENDING: Submitted but no receipt found yet
        CONFIRMED: Receipt found and execution succeeded
        FAILED: Receipt found with a failure marker, or polling timed out
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class BatchState(str, Enum):
    """
    Lifecycle state of one batch execution.

    Attributes:
        IDLE: Nothing in flight
        BUILDING: Fetching nonce/balance and assembling the batch
        REVIEW: Batch built and validated, awaiting a decision to sign
        SIGNING: Signature requested; cannot be cancelled
        PENDING: Submitted, waiting for inclusion
        CONFIRMED: All submissions landed successfully
        FAILED: Construction, signing, submission or execution failed
    """
    IDLE = "idle"
    BUILDING = "building"
    REVIEW = "review"
    SIGNING = "signing"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
