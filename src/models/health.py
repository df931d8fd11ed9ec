from dataclasses import dataclass


@dataclass(frozen=True)
class HealthMetric:
    name: str
    score: int  # 0-100
    weight: float
    status: str  # "excellent" | "good" | "warning" | "critical"
    details: tuple[str, ...] = ()


@dataclass(frozen=True)
class RiskFactor:
    type: str
    severity: str  # "low" | "medium" | "high"
    description: str


@dataclass(frozen=True)
class HealthScore:
    overall: int
    metrics: tuple[HealthMetric, ...]
    recommendations: tuple[str, ...] = ()
    risk_factors: tuple[RiskFactor, ...] = ()
