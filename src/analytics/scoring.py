"""Score aggregator — criterion results into project and overall scores.

Project score:  round(100 * Σ(weight_i · met_i) / Σ(weight_i)), weight defaults to 1.
Overall score:  mean of project scores weighted by normalized estimated value.
Projects without a value borrow the mean of the valued projects' weights.
"""

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from src.analytics.exceptions import ComputationError
from src.models.project import Project
from src.models.scoring import CriterionResult, EligibilityReport, ProjectScore


def round_half_up(value: float | Decimal) -> int:
    """Nearest integer, halves away from zero (no banker's rounding)."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def clamp_score(value: float | Decimal) -> int:
    return max(0, min(100, round_half_up(value)))


def score_project(project_id: str, results: Sequence[CriterionResult]) -> ProjectScore:
    total_weight = Decimal(0)
    met_weight = Decimal(0)
    for r in results:
        weight = Decimal(str(r.criterion.effective_weight))
        if not weight.is_finite() or weight < 0:
            raise ComputationError(
                f"Invalid weight {weight} on {r.criterion.type} for project {project_id}"
            )
        total_weight += weight
        if r.met:
            met_weight += weight

    score = 0 if total_weight == 0 else clamp_score(100 * met_weight / total_weight)
    return ProjectScore(
        project_id=project_id,
        score=score,
        matched_criteria=sum(1 for r in results if r.met),
        total_criteria=len(results),
        criterion_results=tuple(results),
    )


def project_weights(projects: Sequence[Project]) -> list[Decimal]:
    """Normalized value weights (sum to 1) for the given projects."""
    if not projects:
        return []
    raw = [p.estimated_value if p.estimated_value and p.estimated_value > 0 else None for p in projects]
    known = [v for v in raw if v is not None]
    if not known:
        return [Decimal(1) / len(projects)] * len(projects)
    fill = sum(known, Decimal(0)) / len(known)
    filled = [v if v is not None else fill for v in raw]
    total = sum(filled, Decimal(0))
    return [v / total for v in filled]


def overall_score(project_scores: Sequence[ProjectScore], projects: Sequence[Project]) -> int:
    if not project_scores:
        return 0
    by_id = {p.id: p for p in projects}
    ordered = [by_id[ps.project_id] for ps in project_scores if ps.project_id in by_id]
    if len(ordered) != len(project_scores):
        raise ComputationError("Project score without a matching registry entry")

    weights = project_weights(ordered)
    total = sum(weights, Decimal(0))
    if total <= 0:
        return 0
    weighted = sum(
        (w * Decimal(ps.score) for w, ps in zip(weights, project_scores)), Decimal(0)
    )
    return clamp_score(weighted / total)


def build_report(
    address: str,
    project_scores: Sequence[ProjectScore],
    projects: Sequence[Project],
    *,
    timestamp: int,
    degraded_chains: Sequence[int] = (),
) -> EligibilityReport:
    return EligibilityReport(
        address=address,
        overall_score=overall_score(project_scores, projects),
        project_scores=tuple(project_scores),
        timestamp=timestamp,
        degraded_chains=tuple(degraded_chains),
    )
