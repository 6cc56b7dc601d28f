from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine tunables, read from the environment or a local .env file."""

    model_config = SettingsConfigDict(
        env_file=(".env", "backend/.env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    data_dir: str = Field(default="data/graphs", alias="DATA_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: Optional[str] = Field(default=None, alias="LOG_DIR")

    # Worker pool and per-task deadline
    worker_pool_size: int = Field(default=6, ge=1, alias="ENGINE_WORKERS")
    task_timeout_s: float = Field(default=5.0, gt=0, alias="ENGINE_TASK_TIMEOUT_S")
    shutdown_timeout_s: float = Field(default=5.0, ge=0, alias="ENGINE_SHUTDOWN_TIMEOUT_S")

    dijkstra_max_paths: int = Field(default=3, ge=1, alias="DIJKSTRA_MAX_PATHS")
    landmark_route_limit: int = Field(default=3, ge=1, alias="LANDMARK_ROUTE_LIMIT")
    precompute_all_pairs: bool = Field(default=True, alias="PRECOMPUTE_ALL_PAIRS")

    cache_time_bucketing: bool = Field(default=True, alias="CACHE_TIME_BUCKETING")

    traffic_simulation: bool = Field(default=True, alias="TRAFFIC_SIMULATION")
    closure_probability: float = Field(default=0.02, ge=0.0, le=1.0, alias="CLOSURE_PROBABILITY")
    traffic_seed: Optional[int] = Field(default=None, alias="TRAFFIC_SEED")
    calendar_adjustments: bool = Field(default=True, alias="TRAFFIC_CALENDAR_ADJUSTMENTS")

    # Greedy selection
    diversity_threshold: float = Field(default=0.7, ge=0.0, le=1.0, alias="DIVERSITY_THRESHOLD")
    score_max_time_min: float = Field(default=60.0, gt=0, alias="SCORE_MAX_TIME_MIN")
    score_max_distance_m: float = Field(default=5000.0, gt=0, alias="SCORE_MAX_DISTANCE_M")
    score_max_landmarks: int = Field(default=5, ge=1, alias="SCORE_MAX_LANDMARKS")


settings = Settings()
