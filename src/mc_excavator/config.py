"""Runtime configuration for MC Excavator."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="MC_EXCAVATOR_", env_file=".env", extra="ignore")

    app_name: str = "mc-excavator"
    log_level: str = "INFO"
    world_backend: str = Field(default="memory", description="World client backend: memory or minescript.")
    break_timeout_seconds: float = Field(default=5.0, gt=0, description="Give up on a block that has not broken after this long.")
    throughput: float = Field(default=1.0, gt=0.1, le=10, description="Blocks removed per second.")
    progress_interval: int = Field(default=10, ge=1, description="Report progress every N processed cells.")
    hazard_scan_radius: int = Field(default=2, ge=0, le=3)
    safe_distance: float = Field(default=5.0, ge=2.0, description="Hostiles closer than this make a cell unsafe.")
    reach_distance: float = Field(default=4.5, gt=0)
    navigation_timeout_ms: int = Field(default=15_000, gt=0)
    ignored_materials: list[str] = Field(default_factory=list)


settings = Settings()
