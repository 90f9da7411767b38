from pydantic_settings import BaseSettings, SettingsConfigDict

from wealth_manager.schemas import DataSource


class Settings(BaseSettings):
    default_data_source: DataSource = "mock"
    market_data_base_url: str = "http://127.0.0.1:8080"
    market_data_api_key: str = ""
    request_timeout_seconds: float = 10.0
    log_level: str = "INFO"
    log_format: str = "json"
    log_include_stack: bool = False
    log_redact_fields: str = "authorization,access_token,api_key,password,token"

    # Mock market data
    mock_history_years: int = 40
    mock_seed: int | None = None
    mock_failure_rate: float = 0.0
    simulate_latency: bool = False

    # Batched downloads
    download_batch_size: int = 100
    download_batch_pause_seconds: float = 1.0

    # Update scheduler
    scheduled_update_batch_size: int = 50
    manual_update_batch_size: int = 100
    manual_update_pause_seconds: float = 2.0
    scheduler_poll_seconds: float = 60.0
    scheduler_timezone: str = "UTC"
    scheduler_autostart: bool = False

    max_upload_bytes: int = 10 * 1024 * 1024
    default_user_id: int = 1
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    seed_demo_portfolio: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_prefix="WEALTH_")


settings = Settings()
