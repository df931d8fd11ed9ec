from src.models.graph import (
    Cluster,
    ClusteringResult,
    FundingTree,
    RelatedWallet,
    TransferEdge,
    WalletNode,
)
from src.models.health import HealthMetric, HealthScore, RiskFactor
from src.models.project import Criterion, Project, ProjectStatus
from src.models.scoring import CriterionResult, EligibilityReport, ProjectScore
from src.models.wallet import (
    ChainActivity,
    TokenApproval,
    TokenBalance,
    Transaction,
    WalletProfile,
)

__all__ = [
    "WalletProfile",
    "ChainActivity",
    "Transaction",
    "TokenBalance",
    "TokenApproval",
    "Project",
    "ProjectStatus",
    "Criterion",
    "CriterionResult",
    "ProjectScore",
    "EligibilityReport",
    "TransferEdge",
    "WalletNode",
    "FundingTree",
    "Cluster",
    "RelatedWallet",
    "ClusteringResult",
    "HealthMetric",
    "HealthScore",
    "RiskFactor",
]
