"""Criteria evaluator — pure functions of (profile, criterion).

No I/O and no hidden state: identical inputs always give identical results.
Unknown criterion types and bad parameters yield an unmet result with a
reason instead of aborting the remaining criteria.
"""

from collections.abc import Callable, Iterable
from typing import Any

from src.models.project import Criterion
from src.models.scoring import CriterionResult
from src.models.wallet import WalletProfile

UNSUPPORTED = "unsupported_criterion"
INVALID_PARAMS = "invalid_params"

SECONDS_PER_DAY = 86_400


class _InvalidParams(Exception):
    pass


def _int_param(params: dict[str, Any], name: str, default: int | None = None) -> int:
    value = params.get(name, default)
    # bool is an int subclass; floats are refused so balances never compare as floats.
    if isinstance(value, bool) or value is None:
        raise _InvalidParams(name)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise _InvalidParams(name)


def _str_list_param(params: dict[str, Any], name: str) -> list[str]:
    value = params.get(name)
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not value or not all(isinstance(v, str) for v in value):
        raise _InvalidParams(name)
    return [v.lower() for v in value]


def _tx_count_min(profile: WalletProfile, params: dict[str, Any], now: int) -> tuple[bool, Any]:
    minimum = _int_param(params, "min")
    observed = profile.tx_count
    return observed >= minimum, observed


def _protocol_interaction(
    profile: WalletProfile, params: dict[str, Any], now: int
) -> tuple[bool, Any]:
    wanted = set(_str_list_param(params, "protocols"))
    matched = sorted(profile.interacted_protocols & wanted)
    return bool(matched), matched


def _balance_min(profile: WalletProfile, params: dict[str, Any], now: int) -> tuple[bool, Any]:
    token = params.get("token")
    if not isinstance(token, str) or not token:
        raise _InvalidParams("token")
    minimum = _int_param(params, "min")
    chain_id = params.get("chain_id")
    if chain_id is not None and not isinstance(chain_id, int):
        raise _InvalidParams("chain_id")
    observed = profile.balance(token, chain_id)
    return observed >= minimum, observed


def _nft_holding(profile: WalletProfile, params: dict[str, Any], now: int) -> tuple[bool, Any]:
    collection = params.get("collection")
    if collection is not None and not isinstance(collection, str):
        raise _InvalidParams("collection")
    minimum = _int_param(params, "min_count", 1)
    observed = profile.nft_count(collection)
    return observed >= minimum, observed


def _chain_count_min(profile: WalletProfile, params: dict[str, Any], now: int) -> tuple[bool, Any]:
    minimum = _int_param(params, "min")
    observed = len(profile.active_chains)
    return observed >= minimum, observed


def _wallet_age_min(profile: WalletProfile, params: dict[str, Any], now: int) -> tuple[bool, Any]:
    days = _int_param(params, "days")
    first = profile.first_activity
    if first is None:
        return False, 0
    observed = max(0, now - first) // SECONDS_PER_DAY
    return observed >= days, observed


CriterionFn = Callable[[WalletProfile, dict[str, Any], int], tuple[bool, Any]]

CRITERIA: dict[str, CriterionFn] = {
    "tx_count_min": _tx_count_min,
    "protocol_interaction": _protocol_interaction,
    "balance_min": _balance_min,
    "nft_holding": _nft_holding,
    "chain_count_min": _chain_count_min,
    "wallet_age_min": _wallet_age_min,
}


def evaluate_criterion(
    profile: WalletProfile, criterion: Criterion, *, now: int = 0
) -> CriterionResult:
    fn = CRITERIA.get(criterion.type)
    if fn is None:
        return CriterionResult(criterion=criterion, met=False, reason=UNSUPPORTED)
    try:
        met, observed = fn(profile, criterion.params, now)
    except _InvalidParams as e:
        return CriterionResult(
            criterion=criterion, met=False, observed_value=str(e), reason=INVALID_PARAMS
        )
    return CriterionResult(criterion=criterion, met=met, observed_value=observed)


def evaluate(
    profile: WalletProfile, criteria: Iterable[Criterion], *, now: int = 0
) -> list[CriterionResult]:
    """Evaluate every criterion in order.

    ``now`` (unix seconds) is only read by time-relative criteria such as
    ``wallet_age_min``; passing it explicitly keeps evaluation reproducible.
    """
    return [evaluate_criterion(profile, c, now=now) for c in criteria]
