"""SAFI global configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# lucataco/isolate-vocals pinned to the version the service was built against
DEFAULT_MODEL = (
    "lucataco/isolate-vocals:"
    "7337965761899986348ef11352e82110757d9036a445582f6e9e436214f447f5"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000
    env: str = "development"
    log_json: bool = False

    # Persistence
    database_url: str = "sqlite:///./safi.db"
    uploads_dir: Path = Path("./uploads")

    # Uploads
    max_upload_mb: int = 50

    # Transcoding
    ffmpeg_binary: str = "ffmpeg"
    ffmpeg_timeout_s: float = 120.0
    ffmpeg_output_limit: int = 64 * 1024

    # Replicate (separation model)
    replicate_api_token: str = ""
    replicate_model: str = DEFAULT_MODEL
    separation_timeout_s: float = 900.0  # 0 disables

    # Retention sweep
    retention_s: float = 600.0
    sweep_interval_s: float = 60.0

    model_config = SettingsConfigDict(
        env_prefix="SAFI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


settings = Settings()
