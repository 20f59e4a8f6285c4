import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RenderWorkerSettings(BaseModel):
    # Seconds the worker sleeps when the queue is empty. Longer means less idle
    # polling, at the cost of a slower start for the first render.
    laziness: int = Field(default=5, ge=0)
    # Minutes until a finished render is deleted again.
    lifetime: int = Field(default=10, gt=0)
    max_attempts: int = Field(default=5, ge=0)  # 0 = retry forever
    staging_dir: Path | None = None  # None -> system temp dir


class EncoderSettings(BaseModel):
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    timeout_seconds: int | None = None  # None -> wait for ffmpeg indefinitely
    explicit_duration: bool = False  # probe audio and pass -t instead of -shortest


class Settings(BaseSettings):
    redis_url: str
    redis_max_connections: int = 20

    render_worker: RenderWorkerSettings = Field(default_factory=RenderWorkerSettings)
    encoder: EncoderSettings = Field(default_factory=EncoderSettings)

    max_asset_bytes: int = 5 << 20  # 5MB upload limit per asset

    log_dir: Path = Path("logs")
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=[os.getenv("ENV_FILE", ""), ".env"],
        extra="ignore",
        env_nested_delimiter="__",
    )
