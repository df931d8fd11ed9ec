"""Tests for the trending ranker."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from src.analytics.trending import (
    MAX_LIMIT,
    clamp_limit,
    make_filter,
    rank_projects,
    recency_decay,
    trending_score,
)
from src.models.project import Project, ProjectStatus

NOW = datetime(2026, 10, 1, tzinfo=UTC)


def _p(pid: str, status: ProjectStatus, value: int | None = 100, days_ago: float | None = 0,
       chains: list[str] | None = None) -> Project:
    return Project(
        id=pid,
        name=pid,
        status=status,
        chains=chains or ["ethereum"],
        estimated_value=Decimal(value) if value is not None else None,
        snapshot_date=NOW - timedelta(days=days_ago) if days_ago is not None else None,
    )


class TestRecencyDecay:
    def test_today_is_one(self) -> None:
        assert recency_decay(NOW, NOW) == 1.0

    def test_thirty_days_is_e_inverse(self) -> None:
        assert recency_decay(NOW - timedelta(days=30), NOW) == pytest.approx(0.3679, abs=1e-4)

    def test_future_snapshot_clamped(self) -> None:
        assert recency_decay(NOW + timedelta(days=5), NOW) == 1.0

    def test_missing_snapshot(self) -> None:
        assert recency_decay(None, NOW) == 0.0

    def test_naive_datetime_treated_as_utc(self) -> None:
        assert recency_decay(NOW.replace(tzinfo=None), NOW) == 1.0


class TestTrendingScore:
    def test_formula(self) -> None:
        p = _p("a", ProjectStatus.RUMORED, value=50, days_ago=0)
        # 0.40 * 0.6 + 0.35 * 0.5 + 0.25 * 1.0
        assert trending_score(p, Decimal(100), NOW) == pytest.approx(0.665)

    def test_no_values_anywhere(self) -> None:
        p = _p("a", ProjectStatus.CONFIRMED, value=None, days_ago=None)
        assert trending_score(p, Decimal(0), NOW) == pytest.approx(0.4)


class TestRankProjects:
    def test_sorted_desc_with_positional_ranks(self) -> None:
        projects = [
            _p("low", ProjectStatus.SPECULATIVE, value=10, days_ago=90),
            _p("high", ProjectStatus.CONFIRMED, value=100, days_ago=0),
            _p("mid", ProjectStatus.RUMORED, value=50, days_ago=10),
        ]
        entries = rank_projects(projects, now=NOW)
        assert [e.project_id for e in entries] == ["high", "mid", "low"]
        assert [e.rank for e in entries] == [1, 2, 3]
        scores = [e.trending_score for e in entries]
        assert scores == sorted(scores, reverse=True)

    def test_ties_broken_by_id(self) -> None:
        projects = [_p(pid, ProjectStatus.CONFIRMED) for pid in ("c", "a", "b")]
        assert [e.project_id for e in rank_projects(projects, now=NOW)] == ["a", "b", "c"]

    def test_expired_excluded_by_default(self) -> None:
        projects = [_p("gone", ProjectStatus.EXPIRED), _p("live", ProjectStatus.RUMORED)]
        assert [e.project_id for e in rank_projects(projects, now=NOW)] == ["live"]

    def test_confirmed_only_limit_five(self) -> None:
        projects = [_p(f"c{i}", ProjectStatus.CONFIRMED, value=i + 1) for i in range(7)]
        projects += [_p(f"r{i}", ProjectStatus.RUMORED, value=1000) for i in range(3)]
        entries = rank_projects(projects, make_filter(limit=5, statuses=["confirmed"]), now=NOW)
        assert len(entries) == 5
        assert all(e.project.status == ProjectStatus.CONFIRMED for e in entries)

    def test_chain_filter(self) -> None:
        projects = [
            _p("eth", ProjectStatus.CONFIRMED, chains=["ethereum"]),
            _p("arb", ProjectStatus.CONFIRMED, chains=["Arbitrum"]),
        ]
        entries = rank_projects(projects, make_filter(chain="arbitrum"), now=NOW)
        assert [e.project_id for e in entries] == ["arb"]

    def test_empty_registry(self) -> None:
        assert rank_projects([], now=NOW) == []


class TestLimits:
    @pytest.mark.parametrize("given,expected", [(None, 10), (0, 1), (-3, 1), (5, 5), (50, MAX_LIMIT)])
    def test_clamp(self, given: int | None, expected: int) -> None:
        assert clamp_limit(given) == expected

    def test_unknown_status_rejected(self) -> None:
        with pytest.raises(ValueError):
            make_filter(statuses=["hyped"])
