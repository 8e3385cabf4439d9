from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    DATABASE_URL: str = "sqlite:///./ferrywatch.db"
    LOG_LEVEL: str = "INFO"
    # Connection pool (ignored on SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    # CORS origins (comma-separated string for env var support)
    CORS_ORIGINS: str = "http://localhost:5173"
    # WSF Vessels REST API
    WSF_API_BASE_URL: str = "https://www.wsdot.wa.gov/ferries/api/vessels/rest"
    WSF_API_ACCESS_CODE: str | None = None
    WSF_TIMEOUT: float = 30.0
    # Optional YAML file with extra terminal name / vessel abbreviation mappings
    TERMINAL_OVERRIDES_CONFIG: str | None = None
    # Seconds between ticks when `ferrywatch tick --loop` runs without --interval
    ORCHESTRATOR_INTERVAL_SECONDS: int = 15

    # Training: minimum examples before a pair gets a real model
    ML_MIN_TRAINING_EXAMPLES: int = 25
    # Chronological holdout
    ML_TRAIN_RATIO: float = 0.8
    ML_MIN_HOLDOUT_TRAIN_EXAMPLES: int = 200
    ML_COEFFICIENT_EPSILON: float = 1e-6
    # Feature clamp (minutes)
    ML_MAX_SCHEDULE_DELTA_MINUTES: float = 20.0
    # Quality filter thresholds (minutes)
    ML_MIN_AT_DOCK_MINUTES: float = 2.0
    ML_MAX_AT_DOCK_MINUTES: float = 30.0
    ML_MIN_AT_SEA_MINUTES: float = 2.0
    ML_MAX_AT_SEA_MINUTES: float = 90.0
    ML_MAX_TOTAL_MINUTES: float = 120.0
    ML_MAX_ABS_DELAY_MINUTES: float = 60.0
    ML_MAX_MINUTES_AHEAD_OF_SCHEDULE: float = 20.0
    ML_REQUIRE_ARRIVAL_BEFORE_SCHEDULE: bool = True
    # Data loading caps
    ML_MAX_SAMPLES_PER_ROUTE: int = 2500
    ML_LOAD_BATCH_SIZE: int = 500
    ML_LOAD_MAX_BATCHES: int = 50
    ML_DAYS_BACK: int = 720
    ML_MAX_RECORDS_PER_VESSEL: int = 5000
    ML_MAX_TOTAL_HISTORY_RECORDS: int = 50000
    # Bucket training parallelism (1 = sequential)
    ML_TRAINING_WORKERS: int = 1
    # Retry for committing storage writes
    STORAGE_RETRY_ATTEMPTS: int = 3
    STORAGE_RETRY_BASE_DELAY: float = 0.5


settings = Settings()
