from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    backend: str = "postgres"

    db_host: str = "localhost"
    db_port: int = 5432
    db_database: str = "docpipe"
    db_username: str = "docpipe"
    db_password: str = "secret"
    db_pool_min_size: int = 1
    db_pool_max_size: int = 20

    ocr_max_attempts: int = 5
    ocr_backoff_delay_ms: int = 2000
    ocr_concurrency: int = 5

    validation_max_attempts: int = 3
    validation_backoff_delay_ms: int = 1000
    validation_concurrency: int = 5

    persistence_max_attempts: int = 4
    persistence_backoff_delay_ms: int = 1500
    persistence_concurrency: int = 5

    job_poll_interval_seconds: float = 1.0
    job_lock_timeout_seconds: int = 300
    lock_retry_delay_seconds: float = 1.0
    job_retention_seconds: int = 24 * 60 * 60
    failed_job_retention_seconds: int = 7 * 24 * 60 * 60

    ocr_engine: str = "simulated"
    ocr_simulated_delay_seconds: float = 0.0

    validation_min_text_length: int = 10
    validation_min_confidence: float = 0.7

    storage_root: str = "./storage"
    max_upload_size_bytes: int = 10 * 1024 * 1024
    allowed_mime_types: list[str] = [
        "application/pdf",
        "image/png",
        "image/jpeg",
        "image/tiff",
        "text/plain",
    ]

    api_host: str = "0.0.0.0"
    api_port: int = 8000
