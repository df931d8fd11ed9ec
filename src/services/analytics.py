"""Wallet analytics service — the four public operations behind the API.

Every operation validates its input before touching a collaborator, then
goes through the result cache keyed ``{domain}:{subject}:{variant}``. Cached
payloads are the JSON form of the response models, so the memory and Redis
stores hold the same thing.
"""

import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel

from src.analytics.address import normalize_address, short
from src.analytics.chaindata.client import ChainDataProvider
from src.analytics.criteria import evaluate
from src.analytics.exceptions import ValidationError
from src.analytics.health_score import HealthScoreComposer
from src.analytics.metrics import AnalyticsMetrics, metrics as global_metrics
from src.analytics.normalizer import collect_wallet_profile
from src.analytics.registry import ProjectRegistry
from src.analytics.scoring import build_report, score_project
from src.analytics.trending import make_filter, rank_projects
from src.analytics.wallet_cluster import (
    ClusteringParams,
    analyze_wallet_cluster,
    expand_transfer_graph,
    fetch_concurrency,
)
from src.db.cache import ResultCache, make_cache_key
from src.models.graph import ClusteringResult
from src.models.health import HealthScore
from src.models.project import Project
from src.models.responses import (
    AirdropScore,
    ClusterOut,
    ClusteringResponse,
    CriterionOut,
    EligibilityResponse,
    FundingTreeOut,
    HealthMetricOut,
    HealthScoreOut,
    RelatedWalletOut,
    RiskFactorOut,
    TrendingProject,
    TrendingResponse,
    WalletHealthResponse,
)
from src.models.scoring import EligibilityReport
from src.models.wallet import WalletProfile

ResponseT = TypeVar("ResponseT", bound=BaseModel)


@dataclass(frozen=True)
class CacheTTLs:
    eligibility_ms: int = 5 * 60 * 1000
    trending_ms: int = 10 * 60 * 1000
    clustering_ms: int = 30 * 60 * 1000
    health_ms: int = 5 * 60 * 1000


class WalletAnalyticsService:
    """Eligibility, trending, clustering and health over injected collaborators."""

    def __init__(
        self,
        provider: ChainDataProvider,
        registry: ProjectRegistry,
        cache: ResultCache,
        *,
        chain_ids: Sequence[int],
        health: HealthScoreComposer | None = None,
        clustering: ClusteringParams | None = None,
        ttls: CacheTTLs | None = None,
        timeout: float = 5.0,
        max_pages: int = 5,
        metrics: AnalyticsMetrics | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.cache = cache
        self.chain_ids = sorted(set(chain_ids))
        self.health = health or HealthScoreComposer()
        self.clustering = clustering or ClusteringParams()
        self.ttls = ttls or CacheTTLs()
        self.timeout = timeout
        self.max_pages = max_pages
        self.metrics = metrics or global_metrics
        self._clock = clock or (lambda: datetime.now(UTC))

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        provider: ChainDataProvider,
        registry: ProjectRegistry,
        cache: ResultCache,
    ) -> "WalletAnalyticsService":
        return cls(
            provider,
            registry,
            cache,
            chain_ids=settings.supported_chain_ids,
            health=HealthScoreComposer(
                settings.health_weights,
                flagged_contracts=settings.flagged_contracts,
                max_recommendations=settings.health_max_recommendations,
                default_gas_median_wei=settings.default_gas_median_wei,
            ),
            clustering=ClusteringParams(
                dust_threshold=settings.cluster_dust_threshold,
                max_depth=settings.cluster_max_depth,
                max_nodes=settings.cluster_max_nodes,
                lookback_days=settings.cluster_lookback_days,
                min_volume=settings.cluster_min_volume,
                min_shared_counterparties=settings.cluster_min_shared_counterparties,
                related_hops=settings.cluster_related_hops,
                expansion_depth=settings.cluster_expansion_depth,
                fetch_concurrency=fetch_concurrency(
                    settings.goldrush_max_rps, settings.chain_data_timeout_sec
                ),
            ),
            ttls=CacheTTLs(
                eligibility_ms=settings.eligibility_cache_ttl_ms,
                trending_ms=settings.trending_cache_ttl_ms,
                clustering_ms=settings.clustering_cache_ttl_ms,
                health_ms=settings.health_cache_ttl_ms,
            ),
            timeout=settings.chain_data_timeout_sec,
            max_pages=settings.chain_data_max_pages,
        )

    @property
    def _chains_variant(self) -> str:
        return "chains=" + ",".join(str(c) for c in self.chain_ids)

    def _now(self) -> int:
        return int(self._clock().timestamp())

    async def _profile(self, address: str) -> WalletProfile:
        return await collect_wallet_profile(
            self.provider,
            address,
            self.chain_ids,
            timeout=self.timeout,
            max_pages=self.max_pages,
        )

    async def _run(
        self,
        operation: str,
        key: str,
        ttl_ms: int,
        model: type[ResponseT],
        compute: Callable[[], Awaitable[ResponseT]],
    ) -> ResponseT:
        start = time.monotonic()

        async def _payload() -> dict[str, Any]:
            response = await compute()
            return response.model_dump(mode="json", by_alias=True, exclude={"cached"})

        try:
            payload, cached = await self.cache.get_or_compute(key, ttl_ms, _payload)
        except Exception as e:
            self.metrics.record_failure(operation, e)
            logger.warning(f"[ANALYTICS] {operation} failed for {key}: {type(e).__name__}: {e}")
            raise

        response = model.model_validate({**payload, "cached": cached})
        self.metrics.record_run(
            operation,
            (time.monotonic() - start) * 1000,
            cached=cached,
            degraded=bool(payload.get("degradedChains")),
        )
        return response

    # --- eligibility ---

    async def eligibility(self, address: str) -> EligibilityResponse:
        """Per-project eligibility scores and the value-weighted overall score."""
        addr = normalize_address(address)

        async def compute() -> EligibilityResponse:
            profile = await self._profile(addr)
            projects = self.registry.active()
            report = evaluate_eligibility(profile, projects, now=self._now())
            logger.info(
                f"[ELIGIBILITY] {short(addr)}: overall={report.overall_score} "
                f"projects={len(report.project_scores)}"
            )
            return eligibility_response(report, projects)

        key = make_cache_key("eligibility", addr, self._chains_variant)
        return await self._run(
            "eligibility", key, self.ttls.eligibility_ms, EligibilityResponse, compute
        )

    # --- trending ---

    async def trending(
        self,
        *,
        limit: int | None = None,
        status: str | Sequence[str] | None = None,
        chain: str | None = None,
    ) -> TrendingResponse:
        """Top projects by trending score. ``status`` may be comma separated."""
        statuses = _parse_statuses(status)
        try:
            flt = make_filter(limit=limit, statuses=statuses, chain=chain)
        except ValueError as e:
            raise ValidationError(f"Unknown project status in {statuses}", field="status") from e

        async def compute() -> TrendingResponse:
            now = self._clock()
            entries = rank_projects(self.registry, flt, now=now)
            return TrendingResponse(
                trending=[
                    TrendingProject(
                        rank=e.rank,
                        project_id=e.project_id,
                        name=e.project.name,
                        status=e.project.status.value,
                        trending_score=e.trending_score,
                        chains=list(e.project.chains),
                        estimated_value=_as_float(e.project.estimated_value),
                        snapshot_date=e.project.snapshot_date,
                        claim_url=e.project.claim_url,
                    )
                    for e in entries
                ],
                generated_at=now,
            )

        variant = (
            f"status={','.join(sorted(s.value for s in flt.statuses))}"
            f"|chain={flt.chain or '*'}|limit={flt.limit}"
        )
        key = make_cache_key("trending", "registry", variant)
        return await self._run("trending", key, self.ttls.trending_ms, TrendingResponse, compute)

    # --- clustering ---

    async def wallet_clustering(self, address: str) -> ClusteringResponse:
        """Related wallets, clusters and funding tree around ``address``."""
        addr = normalize_address(address)

        async def compute() -> ClusteringResponse:
            profile = await self._profile(addr)
            edges = await expand_transfer_graph(
                self.provider,
                profile,
                depth=self.clustering.expansion_depth,
                max_nodes=self.clustering.max_nodes,
                dust_threshold=self.clustering.dust_threshold,
                timeout=self.timeout,
                concurrency=self.clustering.fetch_concurrency,
            )
            result = analyze_wallet_cluster(addr, edges, self.clustering, now=self._now())
            logger.info(
                f"[CLUSTER] {short(addr)}: {len(edges)} edges, "
                f"{len(result.related_wallets)} related, {len(result.clusters)} clusters"
            )
            return clustering_response(result, profile.degraded_chains)

        key = make_cache_key("clustering", addr, self._chains_variant)
        return await self._run(
            "wallet_clustering", key, self.ttls.clustering_ms, ClusteringResponse, compute
        )

    # --- health ---

    async def wallet_health(self, address: str) -> WalletHealthResponse:
        """Composite health score, recommendations and risk factors."""
        addr = normalize_address(address)

        async def compute() -> WalletHealthResponse:
            profile = await self._profile(addr)
            score = self.health.compose(profile, now=self._now())
            logger.info(f"[HEALTH] {short(addr)}: overall={score.overall}")
            return health_response(addr, score, profile.degraded_chains)

        key = make_cache_key("health", addr, self._chains_variant)
        return await self._run(
            "wallet_health", key, self.ttls.health_ms, WalletHealthResponse, compute
        )


def evaluate_eligibility(
    profile: WalletProfile, projects: Sequence[Project], *, now: int
) -> EligibilityReport:
    """Evaluate and aggregate every project for one profile. Pure."""
    project_scores = [
        score_project(p.id, evaluate(profile, p.criteria, now=now)) for p in projects
    ]
    return build_report(
        profile.address,
        project_scores,
        projects,
        timestamp=now,
        degraded_chains=profile.degraded_chains,
    )


def _parse_statuses(status: str | Sequence[str] | None) -> list[str] | None:
    if status is None:
        return None
    raw = status.split(",") if isinstance(status, str) else list(status)
    parsed = [s.strip().lower() for s in raw if s and s.strip()]
    return parsed or None


def _as_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def eligibility_response(
    report: EligibilityReport, projects: Sequence[Project]
) -> EligibilityResponse:
    by_id = {p.id: p for p in projects}
    airdrops = []
    for ps in report.project_scores:
        project = by_id[ps.project_id]
        airdrops.append(AirdropScore(
            project=project.name,
            project_id=project.id,
            status=project.status.value,
            score=ps.score,
            matched_criteria=ps.matched_criteria,
            total_criteria=ps.total_criteria,
            estimated_value=_as_float(project.estimated_value),
            criteria=[
                CriterionOut(
                    type=r.criterion.type,
                    met=r.met,
                    weight=r.criterion.effective_weight,
                    description=r.criterion.description,
                    observed_value=r.observed_value,
                    reason=r.reason,
                )
                for r in ps.criterion_results
            ],
        ))
    return EligibilityResponse(
        address=report.address,
        overall_score=report.overall_score,
        airdrops=airdrops,
        degraded_chains=list(report.degraded_chains),
        timestamp=report.timestamp,
    )


def clustering_response(
    result: ClusteringResult, degraded_chains: Sequence[int] = ()
) -> ClusteringResponse:
    tree = result.funding_tree
    return ClusteringResponse(
        address=result.address,
        related_wallets=[
            RelatedWalletOut(
                address=r.address, hops=r.hops, volume=r.volume, relationship=r.relationship
            )
            for r in result.related_wallets
        ],
        clusters=[
            ClusterOut(id=c.id, members=sorted(c.members), size=c.size, volume=c.volume)
            for c in result.clusters
        ],
        funding_tree=FundingTreeOut(
            root=tree.root,
            node_count=len(tree.nodes),
            truncated=tree.truncated,
            dropped_back_edges=tree.dropped_back_edges,
            dropped_cross_edges=tree.dropped_cross_edges,
            tree=tree.to_nested(),
        ),
        degraded_chains=list(degraded_chains),
    )


def health_response(
    address: str, score: HealthScore, degraded_chains: Sequence[int] = ()
) -> WalletHealthResponse:
    return WalletHealthResponse(
        address=address,
        health_score=HealthScoreOut(
            overall=score.overall,
            metrics=[
                HealthMetricOut(
                    name=m.name,
                    score=m.score,
                    weight=m.weight,
                    status=m.status,
                    details=list(m.details),
                )
                for m in score.metrics
            ],
        ),
        recommendations=list(score.recommendations),
        risk_factors=[
            RiskFactorOut(type=r.type, severity=r.severity, description=r.description)
            for r in score.risk_factors
        ],
        degraded_chains=list(degraded_chains),
    )
