"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Content Provider Configuration
    content_api_base_url: str = Field(
        default="https://generativelanguage.googleapis.com",
        description="Base URL for the generative content API"
    )
    content_api_key: str = Field(
        default="",
        description="API key for the generative content API"
    )
    text_model: str = Field(
        default="gemini-3-flash-preview",
        description="Model used for tree pools and fun facts"
    )
    image_model: str = Field(
        default="gemini-2.5-flash-image",
        description="Model used for seasonal specimen images"
    )
    image_aspect_ratio: str = Field(
        default="16:9",
        description="Aspect ratio requested for generated images"
    )
    request_timeout: float = Field(
        default=60.0,
        description="Timeout in seconds for content API requests"
    )
    pool_size: int = Field(
        default=3,
        description="Number of specimens requested per pool"
    )

    # Retry Configuration
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of retry attempts for API calls"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=4,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Land Geometry
    land_boundaries_url: str = Field(
        default="https://cdn.jsdelivr.net/npm/world-atlas@2/land-110m.json",
        description="TopoJSON source for land boundaries"
    )

    # Globe Rendering Parameters
    globe_size: int = Field(
        default=280,
        description="Logical width and height of the globe surface in pixels"
    )
    globe_scale_divisor: float = Field(
        default=2.2,
        description="Sphere radius is globe_size divided by this value"
    )
    globe_tilt: float = Field(
        default=-15.0,
        description="Fixed latitude tilt of the globe in degrees"
    )
    globe_rotation_step: float = Field(
        default=0.75,
        description="Longitude advance per frame in degrees (15 degrees per second at the default frame rate)"
    )
    globe_frame_rate: int = Field(
        default=20,
        description="Frames per second of the render loop"
    )
    globe_graticule_step: float = Field(
        default=10.0,
        description="Spacing of graticule lines in degrees"
    )
    marker_pulse_period_ms: float = Field(
        default=1885.0,
        description="Period of the habitat marker pulse in milliseconds"
    )
    marker_base_radius: float = Field(
        default=4.0,
        description="Radius of a habitat marker dot in pixels"
    )
    marker_pulse_growth: float = Field(
        default=15.0,
        description="Extra ring radius at full pulse in pixels"
    )
    marker_ring_opacity: float = Field(
        default=0.4,
        description="Opacity of the pulse ring at rest"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="ArborGaia",
        description="Application name"
    )
    app_version: str = Field(
        default="2.8.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
