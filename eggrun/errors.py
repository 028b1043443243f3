"""
Error taxonomy for eggrun.

Lower layers (stores, catalog, workout session) raise exceptions. The reward
coordinator never lets them escape from `acquire` / `evolve`: it turns them
into a `RewardResult` so the caller always gets an explicit outcome.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class EggRunError(Exception):
    """Base class for all eggrun exceptions."""


class StoreUnavailableError(EggRunError):
    """The persistence backend failed to read or write."""


class DataIntegrityError(EggRunError):
    """The catalog is missing a referenced species or has a cyclic chain."""


class WorkoutStateError(EggRunError):
    """A workout session was driven through an illegal transition."""


class RewardErrorCode(str, Enum):
    INSUFFICIENT_RESOURCES = "insufficient_resources"
    INSUFFICIENT_CANDIES = "insufficient_candies"
    NO_ELIGIBLE_SPECIES = "no_eligible_species"
    CANNOT_EVOLVE = "cannot_evolve"
    CREATURE_NOT_FOUND = "creature_not_found"
    DATA_INTEGRITY = "data_integrity"
    STORE_UNAVAILABLE = "store_unavailable"


class RewardResult(BaseModel):
    """
    Outcome of a coordinator operation.

    `inconsistent` is only ever set on failures: currency was consumed, the
    grant failed, and the compensating refund failed as well. Such results
    need external reconciliation.
    """

    ok: bool
    value: Optional[Any] = None
    error: Optional[RewardErrorCode] = None
    message: str = ""
    inconsistent: bool = False

    @classmethod
    def success(cls, value: Any, message: str = "") -> "RewardResult":
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(
        cls, error: RewardErrorCode, message: str = "", inconsistent: bool = False
    ) -> "RewardResult":
        return cls(ok=False, error=error, message=message, inconsistent=inconsistent)
