"""
Job outcome schemas — the closed result type of one executor attempt.

JobOutcome = Success | RateLimited | Failure, discriminated by `kind`.
Every consumer handles all three variants explicitly.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class ProgressDelta(BaseModel):
    """Counts reported by one attempt; added to the job's cumulative counters."""
    fetched: int = Field(default=0, ge=0)
    created: int = Field(default=0, ge=0)
    updated: int = Field(default=0, ge=0)
    unchanged: int = Field(default=0, ge=0)

    def __add__(self, other: "ProgressDelta") -> "ProgressDelta":
        return ProgressDelta(
            fetched=self.fetched + other.fetched,
            created=self.created + other.created,
            updated=self.updated + other.updated,
            unchanged=self.unchanged + other.unchanged,
        )


class Success(BaseModel):
    kind: Literal["success"] = "success"
    progress: ProgressDelta = Field(default_factory=ProgressDelta)
    categories_completed: int = Field(default=0, ge=0)


class RateLimited(BaseModel):
    kind: Literal["rate_limited"] = "rate_limited"
    wait_seconds: int = Field(gt=0)
    category: Optional[str] = None
    progress: ProgressDelta = Field(default_factory=ProgressDelta)
    categories_completed: int = Field(default=0, ge=0)


class Failure(BaseModel):
    kind: Literal["failure"] = "failure"
    message: str
    retryable: bool = False
    progress: ProgressDelta = Field(default_factory=ProgressDelta)
    categories_completed: int = Field(default=0, ge=0)


JobOutcome = Annotated[Union[Success, RateLimited, Failure], Field(discriminator="kind")]
