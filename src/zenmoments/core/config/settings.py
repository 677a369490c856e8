"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Zen Moments service configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default: the server exposes location history and has no auth layer.
    zen_host: str = "127.0.0.1"
    zen_port: int = 8003
    zen_log_level: str = "info"
    zen_allow_insecure_bind: bool = False
    zen_transport: str = "streamable-http"

    # Sampling
    sample_interval_seconds: float = 30.0
    sample_retention_minutes: int = 60
    moment_retention_hours: int = 24

    # Detection (heuristic thresholds, not a calibrated classifier)
    detection_window_minutes: int = 5
    min_baseline_samples: int = 3
    heart_rate_drop_threshold: float = 5.0
    stress_drop_threshold: float = 10.0
    movement_ceiling: int = 25

    # Simulation
    simulation_mode: bool = True
    relaxation_dip_probability: float = 0.05
    seed_history_samples: int = 60

    # Fallback location (Amsterdam)
    default_latitude: float = 52.3676
    default_longitude: float = 4.9041
    location_jitter_degrees: float = 0.01

    # Place enrichment
    enrichment_timeout_seconds: float = 5.0
    overpass_enabled: bool = True
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    overpass_radius_meters: int = 2000

    # Storage (feedback records)
    db_path: str = "~/.zenmoments/feedback.db"
    encryption_key: str = ""
    feedback_namespace: str = "relaxation_feedback"


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
