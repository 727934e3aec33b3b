"""Central configuration via Pydantic Settings. All values driven by env vars."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # API Keys
    openai_api_key: str = ""

    # Embedding
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    embedding_batch_size: int = 100
    embedding_timeout_seconds: float = 10.0
    embedding_max_chars: int = 8000

    # Search resolver
    search_default_limit: int = 10
    search_max_limit: int = 200
    search_min_window: int = 50
    search_window_floor_cap: int = 200
    search_max_window: int = 1000
    search_max_rounds: int = 5

    # Rate limiting (fixed windows)
    rate_limit_window_ms: int = 60_000
    rate_limit_read_ip: int = 120
    rate_limit_read_key: int = 600
    rate_limit_write_ip: int = 30
    rate_limit_write_key: int = 120
    rate_limit_download_ip: int = 20
    rate_limit_download_key: int = 120
    trust_forwarded_ips: bool = False

    # Quality scoring weights
    quality_w_volume: float = 35.0
    quality_w_diversity: float = 15.0
    quality_w_headings: float = 10.0
    quality_w_bullets: float = 10.0
    quality_template_penalty: float = 8.0
    quality_template_penalty_cap: float = 32.0
    quality_generic_summary_penalty: float = 12.0
    quality_target_words: int = 120

    # Acceptance thresholds per trust tier
    quality_threshold_low: float = 45.0
    quality_threshold_medium: float = 35.0
    quality_threshold_trusted: float = 25.0
    quality_min_words_low: int = 25
    quality_similar_step: float = 5.0
    quality_similar_max_steps: int = 5

    # Near-duplicate detection
    near_duplicate_threshold: float = 0.8
    similar_window_hours: int = 24
    similar_max_candidates: int = 20

    # Trust tiers
    trust_medium_age_days: int = 7
    trust_trusted_age_days: int = 30
    trust_trusted_min_items: int = 3
    trust_veteran_age_days: int = 180
    low_trust_new_items_per_hour: int = 5

    # Slug reservations
    reserved_slug_cooldown_days: int = 30

    # Maintenance sweeps
    sweep_batch_size: int = 50
    sweep_max_readme_bytes: int = 8000
    sweep_nomination_threshold: int = 3
    maintenance_max_runs: int = 100

    # Storage paths
    sqlite_db_path: str = "data/registry.db"
    rate_limit_db_path: str = "data/rate_limits.db"
    embedding_cache_db_path: str = "data/embedding_cache.db"
    faiss_index_path: str = "data/faiss_index"
    blob_store_path: str = "data/blobs"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = {"env_file": ".env", "env_prefix": "REGISTRY_"}
