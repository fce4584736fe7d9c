from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "redaction"
    db_username: str = "redaction"
    db_password: str = "secret"

    max_job_attempts: int = 3
    job_poll_interval_seconds: int = 5
    job_timeout_seconds: int = 300
    job_cleanup_slack_seconds: int = 5
    job_visibility_timeout_seconds: int = 360
    dedup_window_seconds: int = 300

    redaction_timeout_seconds: float = 1.0

    storage_backend: str = "local"
    files_root: str = "/app/files"
    s3_bucket_name: str = ""
    aws_region: str = "us-east-1"
