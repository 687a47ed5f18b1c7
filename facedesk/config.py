"""
Application configuration settings
"""
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="FACEDESK_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # API Settings
    host: str = "0.0.0.0"
    port: int = 3002
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # Detection Settings
    input_size: int = Field(320, gt=0)
    score_threshold: float = Field(0.5, ge=0.0, le=1.0)
    max_dimension: int = Field(640, gt=0)
    warmup: bool = True
    detection_timeout: Optional[float] = Field(None, gt=0)  # seconds, None disables

    # Quality Gate Settings
    min_confidence: float = Field(0.5, ge=0.0, le=1.0)
    min_face_ratio: float = Field(0.05, ge=0.0, le=1.0)
    max_center_distance: float = Field(0.25, ge=0.0)
    max_face_angle: float = Field(15.0, ge=0.0, le=90.0)

    # Matching Settings
    tolerance: float = Field(0.6, gt=0.0, le=1.0)

    # Descriptor Cache
    cache_capacity: int = Field(50, ge=1)


# Global settings instance
settings = Settings()
