"""Trending ranker — orders the project registry by a recency/value heuristic.

    trending = 0.40 * status_weight + 0.35 * normalized_value + 0.25 * recency_decay
    recency_decay = exp(-days_since_snapshot / 30)

Heuristic only: used for ordering, carries no probabilistic meaning.
"""

import math
from collections.abc import Collection, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from src.models.project import Project, ProjectStatus

STATUS_WEIGHTS: dict[ProjectStatus, float] = {
    ProjectStatus.CONFIRMED: 1.0,
    ProjectStatus.RUMORED: 0.6,
    ProjectStatus.SPECULATIVE: 0.3,
    ProjectStatus.EXPIRED: 0.0,
}

W_STATUS = 0.40
W_VALUE = 0.35
W_RECENCY = 0.25
RECENCY_SCALE_DAYS = 30.0

MIN_LIMIT = 1
MAX_LIMIT = 10
DEFAULT_LIMIT = 10
SCORE_DECIMALS = 4

DEFAULT_STATUSES = frozenset(
    {ProjectStatus.CONFIRMED, ProjectStatus.RUMORED, ProjectStatus.SPECULATIVE}
)


@dataclass(frozen=True)
class TrendingEntry:
    project_id: str
    trending_score: float
    rank: int
    project: Project


@dataclass(frozen=True)
class TrendingFilter:
    statuses: frozenset[ProjectStatus] = DEFAULT_STATUSES
    chain: str | None = None
    limit: int = DEFAULT_LIMIT


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    return max(MIN_LIMIT, min(MAX_LIMIT, int(limit)))


def make_filter(
    *,
    limit: int | None = None,
    statuses: Collection[ProjectStatus | str] | None = None,
    chain: str | None = None,
) -> TrendingFilter:
    """Build a filter; unknown status names raise ValueError."""
    status_set = (
        frozenset(ProjectStatus(s) for s in statuses) if statuses else DEFAULT_STATUSES
    )
    return TrendingFilter(
        statuses=status_set,
        chain=chain.strip().lower() if chain and chain.strip() else None,
        limit=clamp_limit(limit),
    )


def recency_decay(snapshot_date: datetime | None, now: datetime) -> float:
    if snapshot_date is None:
        return 0.0
    if snapshot_date.tzinfo is None:
        snapshot_date = snapshot_date.replace(tzinfo=UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    days = max(0.0, (now - snapshot_date).total_seconds() / 86_400)
    return math.exp(-days / RECENCY_SCALE_DAYS)


def _value(project: Project) -> Decimal:
    return project.estimated_value if project.estimated_value and project.estimated_value > 0 else Decimal(0)


def select_projects(projects: Iterable[Project], flt: TrendingFilter) -> list[Project]:
    selected = []
    for p in projects:
        if p.status not in flt.statuses:
            continue
        if flt.chain and flt.chain not in {c.lower() for c in p.chains}:
            continue
        selected.append(p)
    return selected


def trending_score(project: Project, max_value: Decimal, now: datetime) -> float:
    normalized = float(_value(project) / max_value) if max_value > 0 else 0.0
    raw = (
        W_STATUS * STATUS_WEIGHTS[project.status]
        + W_VALUE * normalized
        + W_RECENCY * recency_decay(project.snapshot_date, now)
    )
    return round(raw, SCORE_DECIMALS)


def rank_projects(
    projects: Iterable[Project],
    flt: TrendingFilter | None = None,
    *,
    now: datetime | None = None,
) -> list[TrendingEntry]:
    """Filter, score and rank projects.

    Sorted by score descending, ties by ascending project id; ranks are 1..n.
    The limit is clamped into [1, 10] rather than rejected.
    """
    flt = flt or TrendingFilter()
    now = now or datetime.now(UTC)
    limit = clamp_limit(flt.limit)

    candidates = select_projects(projects, flt)
    max_value = max((_value(p) for p in candidates), default=Decimal(0))

    scored = sorted(
        ((trending_score(p, max_value, now), p) for p in candidates),
        key=lambda item: (-item[0], item[1].id),
    )
    return [
        TrendingEntry(project_id=p.id, trending_score=score, rank=i + 1, project=p)
        for i, (score, p) in enumerate(scored[:limit])
    ]
