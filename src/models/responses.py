"""Wire payloads for the HTTP surface (camelCase JSON)."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CriterionOut(_Wire):
    type: str
    met: bool
    weight: float
    description: str = ""
    observed_value: Any = None
    reason: str | None = None


class AirdropScore(_Wire):
    project: str
    project_id: str
    status: str
    score: int
    matched_criteria: int
    total_criteria: int
    estimated_value: float | None = None
    criteria: list[CriterionOut] = []


class EligibilityResponse(_Wire):
    address: str
    overall_score: int
    airdrops: list[AirdropScore] = []
    degraded_chains: list[int] = []
    timestamp: int
    cached: bool = False


class TrendingProject(_Wire):
    rank: int
    project_id: str
    name: str
    status: str
    trending_score: float
    chains: list[str] = []
    estimated_value: float | None = None
    snapshot_date: datetime | None = None
    claim_url: str | None = None


class TrendingResponse(_Wire):
    trending: list[TrendingProject] = []
    cached: bool = False
    generated_at: datetime


class RelatedWalletOut(_Wire):
    address: str
    hops: int
    volume: int
    relationship: str


class ClusterOut(_Wire):
    id: str
    members: list[str]
    size: int
    volume: int


class FundingTreeOut(_Wire):
    root: str
    node_count: int
    truncated: bool = False
    dropped_back_edges: int = 0
    dropped_cross_edges: int = 0
    tree: dict[str, Any] = {}


class ClusteringResponse(_Wire):
    address: str
    related_wallets: list[RelatedWalletOut] = []
    clusters: list[ClusterOut] = []
    funding_tree: FundingTreeOut
    degraded_chains: list[int] = []
    cached: bool = False


class HealthMetricOut(_Wire):
    name: str
    score: int
    weight: float
    status: str
    details: list[str] = []


class HealthScoreOut(_Wire):
    overall: int
    metrics: list[HealthMetricOut] = []


class RiskFactorOut(_Wire):
    type: str
    severity: str
    description: str


class WalletHealthResponse(_Wire):
    address: str
    health_score: HealthScoreOut
    recommendations: list[str] = []
    risk_factors: list[RiskFactorOut] = []
    degraded_chains: list[int] = []
    cached: bool = False


class ServiceHealthResponse(_Wire):
    status: str
    version: str
    uptime_sec: int
    redis_ok: bool | None = None  # None when the Redis store is disabled
    projects: int = 0
    cache: dict[str, int] = {}
    operations: dict[str, Any] = {}


class ErrorResponse(BaseModel):
    error: str
    details: Any = None
