"""
MODULE OVERVIEW:
Application-wide configuration using Pydantic Settings.

WHAT IS HAPPENING HERE:
Every timing and sampling knob of the mock feed lives here. Instead of hardcoding
"every 1 second" inside a timer loop, we declare it once. Any value can be overridden
through an environment variable or a `.env` file, which makes it easy to speed the
feed up (or silence a timer) while testing a consumer.
"""
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # Tolerate unrelated env vars so the server runs out of the box
        extra="ignore",
    )

    HOST: str = "0.0.0.0"
    PORT: int = 9090
    LOG_LEVEL: str = "INFO"

    # Alert location sampling (Ho Chi Minh City, ~5km box)
    CITY_CENTER_LAT: float = 10.8231
    CITY_CENTER_LON: float = 106.6297
    CITY_RADIUS: float = 0.05

    # Alert timer: interval redrawn uniformly after every firing
    ALERT_MIN_INTERVAL_S: float = 0.0
    ALERT_MAX_INTERVAL_S: float = 300.0

    # Metrics timer
    METRICS_INTERVAL_S: float = 1.0
    THROUGHPUT_WINDOW: int = 10

    # Resolution timer
    RESOLUTION_INTERVAL_S: float = 10.0
    RESOLUTION_PROBABILITY: float = 0.3

    # Per-connection send deadline; a client slower than this is dropped
    SEND_TIMEOUT_S: float = 1.0

    @model_validator(mode="after")
    def check_ranges(self) -> "Settings":
        if self.ALERT_MIN_INTERVAL_S < 0:
            raise ValueError("ALERT_MIN_INTERVAL_S must be non-negative")
        # A zero wait would spin the timer loop and flood every client
        if self.ALERT_MAX_INTERVAL_S <= 0 or self.METRICS_INTERVAL_S <= 0 or self.RESOLUTION_INTERVAL_S <= 0:
            raise ValueError("ALERT_MAX_INTERVAL_S, METRICS_INTERVAL_S and RESOLUTION_INTERVAL_S must be positive")
        if self.SEND_TIMEOUT_S <= 0:
            raise ValueError("SEND_TIMEOUT_S must be positive")
        if self.ALERT_MIN_INTERVAL_S > self.ALERT_MAX_INTERVAL_S:
            raise ValueError("ALERT_MIN_INTERVAL_S must not exceed ALERT_MAX_INTERVAL_S")
        if not 0.0 <= self.RESOLUTION_PROBABILITY <= 1.0:
            raise ValueError("RESOLUTION_PROBABILITY must be within [0, 1]")
        if self.CITY_RADIUS < 0:
            raise ValueError("CITY_RADIUS must be non-negative")
        if self.THROUGHPUT_WINDOW < 1:
            raise ValueError("THROUGHPUT_WINDOW must be at least 1")
        return self


settings = Settings()
