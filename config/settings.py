from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Redis (result cache backend). Falls back to in-process memory store when disabled.
    redis_url: str = "redis://localhost:6379/0"
    enable_redis_cache: bool = False

    # GoldRush (Covalent) chain data
    goldrush_api_key: str = ""
    goldrush_base_url: str = "https://api.covalenthq.com/v1"
    goldrush_max_rps: float = 4.0
    goldrush_page_size: int = 100
    chain_data_timeout_sec: float = 5.0  # per upstream call
    chain_data_max_pages: int = 5  # pagination cap per chain

    # Chains analysed by default (EVM chain ids)
    supported_chain_ids: list[int] = [1, 10, 137, 324, 8453, 42161]

    # Cache TTLs (ms) per domain
    eligibility_cache_ttl_ms: int = 5 * 60 * 1000
    trending_cache_ttl_ms: int = 10 * 60 * 1000
    clustering_cache_ttl_ms: int = 30 * 60 * 1000
    health_cache_ttl_ms: int = 5 * 60 * 1000

    # Project registry (JSON file; persistence lives elsewhere)
    project_registry_path: str = "config/projects.json"

    # Wallet clustering
    cluster_dust_threshold: int = 10**15  # 0.001 ETH in wei
    cluster_max_depth: int = 5
    cluster_max_nodes: int = 200
    cluster_lookback_days: int = 365
    cluster_min_volume: int = 10**17  # 0.1 ETH two-way volume links a pair
    cluster_min_shared_counterparties: int = 1
    cluster_related_hops: int = 2
    cluster_expansion_depth: int = 2  # provider hops fetched around the queried wallet

    # Wallet health
    health_weights: dict[str, float] = {
        "activityRecency": 0.25,
        "diversification": 0.20,
        "gasEfficiency": 0.15,
        "securityHygiene": 0.25,
        "networkDiversity": 0.15,
    }
    health_max_recommendations: int = 5
    flagged_contracts: list[str] = []
    default_gas_median_wei: int = 20 * 10**9  # used when the gas oracle call fails

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_rate_limit: str = "60/minute"
    api_debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_dir: str = "logs"
    stats_log_interval_sec: float = 60.0

    @model_validator(mode="after")
    def _check_health_weights(self) -> "Settings":
        # Imported lazily: config must not depend on src at import time.
        from src.analytics.health_score import validate_weights

        validate_weights(self.health_weights)
        return self


settings = Settings()
