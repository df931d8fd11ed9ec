"""Airdrop project registry entries."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProjectStatus(str, Enum):
    CONFIRMED = "confirmed"
    RUMORED = "rumored"
    SPECULATIVE = "speculative"
    EXPIRED = "expired"


class Criterion(BaseModel):
    """One eligibility rule. Parameters are interpreted per ``type``."""

    model_config = ConfigDict(frozen=True)

    type: str
    weight: float | None = Field(default=None, ge=0, allow_inf_nan=False)  # 1 when unspecified
    params: dict[str, Any] = Field(default_factory=dict)
    description: str = ""

    @property
    def effective_weight(self) -> float:
        return 1.0 if self.weight is None else float(self.weight)


class Project(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    status: ProjectStatus
    chains: list[str] = Field(default_factory=list)
    estimated_value: Decimal | None = Field(default=None, alias="estimatedValue")
    snapshot_date: datetime | None = Field(default=None, alias="snapshotDate")
    criteria: list[Criterion] = Field(default_factory=list)
    description: str | None = None
    claim_url: str | None = Field(default=None, alias="claimUrl")

    @field_validator("estimated_value")
    @classmethod
    def _non_negative_value(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v < 0:
            raise ValueError("estimatedValue must be >= 0")
        return v
