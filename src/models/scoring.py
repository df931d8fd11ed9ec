"""Eligibility evaluation results."""

from dataclasses import dataclass, field
from typing import Any

from src.models.project import Criterion


@dataclass(frozen=True)
class CriterionResult:
    criterion: Criterion
    met: bool
    observed_value: Any = None
    reason: str | None = None  # "unsupported_criterion" | "invalid_params"


@dataclass(frozen=True)
class ProjectScore:
    project_id: str
    score: int  # 0-100
    matched_criteria: int
    total_criteria: int
    criterion_results: tuple[CriterionResult, ...] = ()


@dataclass(frozen=True)
class EligibilityReport:
    address: str
    overall_score: int  # 0-100; 0 when there is nothing to score
    project_scores: tuple[ProjectScore, ...] = ()
    timestamp: int = 0
    degraded_chains: tuple[int, ...] = field(default_factory=tuple)
