from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    LOG_LEVEL: str = "INFO"
    # Restricted / shallow-water zones (GeoJSON-style polygons in YAML)
    ZONES_CONFIG: str = "config/restricted_zones.yaml"
    # Track store
    TRACK_HISTORY_CAPACITY: int = 50
    TRACK_SILENCE_MINUTES: float = 30.0
    # Reports further ahead of wall clock than this are rejected
    REPORT_MAX_FUTURE_MINUTES: float = 10_080.0  # 7 days
    # Collision risk (great-circle search radius, CPA threshold, look-ahead)
    COLLISION_SEARCH_RADIUS_KM: float = 25.0
    COLLISION_CPA_THRESHOLD_KM: float = 1.0
    COLLISION_HORIZON_MINUTES: float = 30.0
    # Neighbours last heard longer ago than this are not screened
    COLLISION_MAX_REPORT_AGE_MINUTES: float = 30.0
    # Loitering
    LOITER_WINDOW_MINUTES: float = 30.0
    LOITER_RADIUS_M: float = 500.0
    LOITER_MAX_MEAN_SOG_KN: float = 1.0
    LOITER_MIN_SAMPLES: int = 5
    # Grounding: sudden stop inside a restricted zone
    GROUNDING_MIN_PRIOR_SOG_KN: float = 5.0
    GROUNDING_MAX_SOG_KN: float = 0.5
    GROUNDING_MAX_INTERVAL_MINUTES: float = 30.0
    # Discharge observations below this confidence are ignored
    DISCHARGE_MIN_CONFIDENCE: float = 0.3
    # Position jumps implying more than this speed are flagged
    ANOMALY_MAX_IMPLIED_SOG_KN: float = 50.0
    # Notification dispatch
    NOTIFY_MIN_SEVERITY: str = "high"
    DISPATCH_RETRY_DELAYS: list[float] = [1.0, 2.0]  # 3 attempts in total
    NOTIFICATION_FEED_SIZE: int = 200
    NOTIFY_WEBHOOK_URL: str | None = None
    NOTIFY_WEBHOOK_TIMEOUT: float = 5.0
    VOICE_ALERTS_ENABLED: bool = True
    # Alert change stream
    ALERT_CHANGELOG_SIZE: int = 1000
    # CORS origins (comma-separated string for env var support)
    CORS_ORIGINS: str = "http://localhost:5173"


settings = Settings()
