"""Wallet health score — five behavioural metrics folded into one 0-100 score.

Every metric has its own monotonic mapping onto [0, 100] with explicit
clamping. The weight vector is validated once at startup; a bad vector is a
configuration error, never a per-request one.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from statistics import fmean

from src.analytics.exceptions import ConfigurationError
from src.analytics.scoring import round_half_up
from src.models.health import HealthMetric, HealthScore, RiskFactor
from src.models.wallet import WalletProfile

ACTIVITY_RECENCY = "activityRecency"
DIVERSIFICATION = "diversification"
GAS_EFFICIENCY = "gasEfficiency"
SECURITY_HYGIENE = "securityHygiene"
NETWORK_DIVERSITY = "networkDiversity"

METRIC_NAMES = (
    ACTIVITY_RECENCY,
    DIVERSIFICATION,
    GAS_EFFICIENCY,
    SECURITY_HYGIENE,
    NETWORK_DIVERSITY,
)

DEFAULT_WEIGHTS: dict[str, float] = {
    ACTIVITY_RECENCY: 0.25,
    DIVERSIFICATION: 0.20,
    GAS_EFFICIENCY: 0.15,
    SECURITY_HYGIENE: 0.25,
    NETWORK_DIVERSITY: 0.15,
}

RECOMMENDATION_THRESHOLD = 50
MAX_RECOMMENDATIONS = 5
WEIGHT_TOLERANCE = 1e-9

RECENCY_HORIZON_DAYS = 180
POINTS_PER_PROTOCOL_OR_TOKEN = 10
POINTS_PER_COUNTERPARTY = 5
GAS_RATIO_FLOOR = 1.0  # at or below the network median → 100
GAS_RATIO_CEILING = 3.0  # three times the median or worse → 0
GAS_NO_DATA_SCORE = 50
PENALTY_OPEN_APPROVAL = 8
PENALTY_UNLIMITED_APPROVAL = 4
PENALTY_FLAGGED_CONTRACT = 25

RECOMMENDATIONS: dict[str, str] = {
    ACTIVITY_RECENCY: "Wallet has been inactive for {days} days; regular on-chain activity keeps it eligible for snapshot-based airdrops",
    DIVERSIFICATION: "Interact with more protocols and tokens (currently {count}) to diversify your on-chain footprint",
    GAS_EFFICIENCY: "You pay {ratio:.1f}x the network median gas price; batch transactions and transact during low-fee hours",
    SECURITY_HYGIENE: "Revoke unused token approvals ({open} open, {unlimited} unlimited) and avoid flagged contracts",
    NETWORK_DIVERSITY: "Transact with a broader set of counterparties (currently {count})",
}


def validate_weights(weights: Mapping[str, float]) -> None:
    """Raise ConfigurationError unless weights cover every metric, are >= 0 and sum to 1."""
    missing = set(METRIC_NAMES) - set(weights)
    unknown = set(weights) - set(METRIC_NAMES)
    if missing or unknown:
        raise ConfigurationError(
            f"Health weights mismatch: missing={sorted(missing)} unknown={sorted(unknown)}"
        )
    if any(w < 0 or not math.isfinite(w) for w in weights.values()):
        raise ConfigurationError("Health weights must be finite and non-negative")
    total = math.fsum(weights.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise ConfigurationError(f"Health weights must sum to 1, got {total}")


def _clamp(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def status_for(score: int) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "warning"
    return "critical"


def activity_recency_score(days_since_last: float | None) -> int:
    if days_since_last is None:
        return 0
    return _clamp(100 * (1 - max(0.0, days_since_last) / RECENCY_HORIZON_DAYS))


def diversification_score(distinct_count: int) -> int:
    return _clamp(POINTS_PER_PROTOCOL_OR_TOKEN * max(0, distinct_count))


def gas_efficiency_score(gas_ratio: float | None) -> int:
    if gas_ratio is None:
        return GAS_NO_DATA_SCORE
    if gas_ratio <= GAS_RATIO_FLOOR:
        return 100
    if gas_ratio >= GAS_RATIO_CEILING:
        return 0
    span = GAS_RATIO_CEILING - GAS_RATIO_FLOOR
    return _clamp(100 * (GAS_RATIO_CEILING - gas_ratio) / span)


def security_hygiene_score(open_approvals: int, unlimited_approvals: int, flagged: int) -> int:
    return _clamp(
        100
        - PENALTY_OPEN_APPROVAL * open_approvals
        - PENALTY_UNLIMITED_APPROVAL * unlimited_approvals
        - PENALTY_FLAGGED_CONTRACT * flagged
    )


def network_diversity_score(counterparties: int) -> int:
    return _clamp(POINTS_PER_COUNTERPARTY * max(0, counterparties))


@dataclass(frozen=True)
class HealthInputs:
    """Raw figures extracted from a profile, kept for recommendation templates."""

    days_since_last: float | None
    distinct_protocols_tokens: int
    gas_ratio: float | None
    open_approvals: int
    unlimited_approvals: int
    flagged_contracts: int
    counterparties: int


def extract_inputs(
    profile: WalletProfile,
    *,
    now: int,
    flagged_contracts: Iterable[str] = (),
    default_gas_median_wei: int | None = None,
) -> HealthInputs:
    last = profile.last_activity
    days_since_last = (now - last) / 86_400 if last else None

    tokens = {b.contract_address for b in profile.balances if b.amount > 0 or b.nft_count > 0}
    distinct = len(profile.interacted_protocols | tokens)

    # Mean over chains of (wallet average gas price / network median).
    outgoing = [
        tx for tx in profile.transactions
        if tx.from_address == profile.address and tx.gas_price > 0
    ]
    ratios = []
    for chain in profile.chains.values():
        median = chain.gas_median_wei or default_gas_median_wei
        prices = [tx.gas_price for tx in outgoing if tx.chain_id == chain.chain_id]
        if prices and median:
            ratios.append(fmean(prices) / median)
    gas_ratio = fmean(ratios) if ratios else None

    flagged = {a.lower() for a in flagged_contracts}
    touched = {
        tx.to_address for tx in profile.transactions if tx.to_address in flagged
    } | {a.spender_address for a in profile.approvals if a.spender_address in flagged}

    return HealthInputs(
        days_since_last=days_since_last,
        distinct_protocols_tokens=distinct,
        gas_ratio=gas_ratio,
        open_approvals=len(profile.approvals),
        unlimited_approvals=sum(1 for a in profile.approvals if a.is_unlimited),
        flagged_contracts=len(touched),
        counterparties=len(profile.counterparties),
    )


class HealthScoreComposer:
    """Builds a HealthScore from a WalletProfile with a fixed weight vector."""

    def __init__(
        self,
        weights: Mapping[str, float] | None = None,
        *,
        flagged_contracts: Iterable[str] = (),
        max_recommendations: int = MAX_RECOMMENDATIONS,
        default_gas_median_wei: int | None = None,
    ) -> None:
        weights = dict(weights or DEFAULT_WEIGHTS)
        validate_weights(weights)
        self._weights = weights
        self._flagged = frozenset(a.lower() for a in flagged_contracts)
        self._max_recommendations = max(0, min(MAX_RECOMMENDATIONS, max_recommendations))
        self._default_gas_median = default_gas_median_wei

    def compose(self, profile: WalletProfile, *, now: int) -> HealthScore:
        inputs = extract_inputs(
            profile,
            now=now,
            flagged_contracts=self._flagged,
            default_gas_median_wei=self._default_gas_median,
        )
        metrics = self._metrics(inputs)
        total_weight = math.fsum(m.weight for m in metrics)
        overall = (
            _clamp(math.fsum(m.weight * m.score for m in metrics) / total_weight)
            if total_weight > 0
            else 0
        )
        return HealthScore(
            overall=overall,
            metrics=tuple(metrics),
            recommendations=tuple(self._recommendations(metrics, inputs)),
            risk_factors=tuple(_risk_factors(profile, inputs)),
        )

    def _metrics(self, inputs: HealthInputs) -> list[HealthMetric]:
        scores = {
            ACTIVITY_RECENCY: (
                activity_recency_score(inputs.days_since_last),
                (
                    f"Last activity {inputs.days_since_last:.0f} days ago"
                    if inputs.days_since_last is not None
                    else "No on-chain activity found",
                ),
            ),
            DIVERSIFICATION: (
                diversification_score(inputs.distinct_protocols_tokens),
                (f"{inputs.distinct_protocols_tokens} distinct protocols and tokens",),
            ),
            GAS_EFFICIENCY: (
                gas_efficiency_score(inputs.gas_ratio),
                (
                    f"Average gas price is {inputs.gas_ratio:.2f}x the network median"
                    if inputs.gas_ratio is not None
                    else "Not enough data to compare gas prices",
                ),
            ),
            SECURITY_HYGIENE: (
                security_hygiene_score(
                    inputs.open_approvals, inputs.unlimited_approvals, inputs.flagged_contracts
                ),
                (
                    f"{inputs.open_approvals} open approvals",
                    f"{inputs.unlimited_approvals} unlimited approvals",
                    f"{inputs.flagged_contracts} flagged contracts touched",
                ),
            ),
            NETWORK_DIVERSITY: (
                network_diversity_score(inputs.counterparties),
                (f"{inputs.counterparties} distinct counterparties",),
            ),
        }
        return [
            HealthMetric(
                name=name,
                score=scores[name][0],
                weight=self._weights[name],
                status=status_for(scores[name][0]),
                details=scores[name][1],
            )
            for name in METRIC_NAMES
        ]

    def _recommendations(self, metrics: list[HealthMetric], inputs: HealthInputs) -> list[str]:
        weak = [m for m in metrics if m.score < RECOMMENDATION_THRESHOLD]
        # Stable sort keeps METRIC_NAMES order on equal deficits.
        weak.sort(key=lambda m: RECOMMENDATION_THRESHOLD - m.score, reverse=True)
        values = {
            "days": f"{inputs.days_since_last:.0f}" if inputs.days_since_last is not None else "many",
            "count": inputs.distinct_protocols_tokens,
            "ratio": inputs.gas_ratio or 0.0,
            "open": inputs.open_approvals,
            "unlimited": inputs.unlimited_approvals,
        }
        out = []
        for m in weak[: self._max_recommendations]:
            template_values = dict(values)
            if m.name == NETWORK_DIVERSITY:
                template_values["count"] = inputs.counterparties
            out.append(RECOMMENDATIONS[m.name].format(**template_values))
        return out


def _risk_factors(profile: WalletProfile, inputs: HealthInputs) -> list[RiskFactor]:
    factors: list[RiskFactor] = []
    if inputs.flagged_contracts:
        factors.append(RiskFactor(
            type="flagged_contract_exposure",
            severity="high",
            description=f"Interacted with {inputs.flagged_contracts} flagged contracts",
        ))
    if inputs.unlimited_approvals:
        factors.append(RiskFactor(
            type="unlimited_approvals",
            severity="medium",
            description=f"{inputs.unlimited_approvals} tokens approved for unlimited spending",
        ))
    if inputs.gas_ratio is not None and inputs.gas_ratio >= GAS_RATIO_CEILING:
        factors.append(RiskFactor(
            type="high_gas_usage",
            severity="low",
            description=f"Gas price averages {inputs.gas_ratio:.1f}x the network median",
        ))
    if profile.is_degraded:
        factors.append(RiskFactor(
            type="partial_data",
            severity="low",
            description=f"Data unavailable for chains {list(profile.degraded_chains)}",
        ))
    return factors
