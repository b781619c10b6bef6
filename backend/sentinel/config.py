from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    SENTINEL_DB_URL: str = "sqlite+aiosqlite:///./sentinel.db"

    # --- Minimal B2B Auth (API key) ---
    # Send: X-API-Key: <key>
    API_KEY: str | None = None

    # Actor recorded on automated writes (scheduler, cycles, replays)
    SYSTEM_ACTOR: str = "system"

    # --- Geography ---
    KNOWN_COUNTIES: list[str] = ["Spokane", "Kootenai", "Bonner", "Latah", "Whitman", "Lincoln", "Stevens"]
    DEFAULT_COUNTY: str = "Unknown"
    DEFAULT_COUNTIES: list[str] = ["Spokane", "Kootenai"]
    COUNTY_STATES: dict[str, str] = {
        "spokane": "WA",
        "kootenai": "ID",
        "bonner": "ID",
        "latah": "ID",
        "whitman": "WA",
        "lincoln": "WA",
        "stevens": "WA",
    }

    # --- PropertyRadar (commercial, narrow pulls) ---
    PROPERTYRADAR_API_KEY: str | None = None
    PROPERTYRADAR_BASE_URL: str = "https://api.propertyradar.com/v1/properties"
    PROPERTYRADAR_MAX_PULL: int = 25
    PROPERTYRADAR_MIN_EQUITY_PERCENT: int = 50

    # --- ATTOM (commercial daily delta, narrow pulls) ---
    ATTOM_API_KEY: str | None = None
    ATTOM_BASE_URL: str = "https://api.gateway.attomdata.com/propertyapi/v1.0.0"
    ATTOM_PAGESIZE: int = 50
    ATTOM_MAX_PAGES: int = 2
    ATTOM_LOOKBACK_HOURS: int = 24
    COUNTY_FIPS: dict[str, str] = {"spokane": "53063", "kootenai": "16055"}

    # --- Crawler output (broad pulls) ---
    CRAWLER_FEED_DIR: str = "data/crawler_feeds"

    # --- HTTP resilience ---
    HTTP_TIMEOUT_S: float = 20.0
    HTTP_MAX_RETRIES: int = 2
    HTTP_BACKOFF_BASE_S: float = 0.5
    HTTP_RATE_LIMIT_RPS: float = 2.0
    HTTP_CIRCUIT_FAIL_THRESHOLD: int = 5
    HTTP_CIRCUIT_RESET_S: float = 60.0

    # --- Cycle orchestration ---
    ADAPTER_TIMEOUT_S: float = 120.0
    CYCLE_MAX_CONCURRENCY: int = 4
    BATCH_MAX_CONCURRENCY: int = 8

    # --- Promotion thresholds (by source kind) ---
    PROMOTION_THRESHOLD_COMMERCIAL: int = 75
    PROMOTION_THRESHOLD_PARTNER: int = 70
    PROMOTION_THRESHOLD_CRAWLER: int = 60

    # Historical close rates per distress type (feed the conversion adjustment)
    CONVERSION_PRIORS: dict[str, float] = {
        "probate": 0.12,
        "pre_foreclosure": 0.15,
        "tax_lien": 0.10,
        "code_violation": 0.05,
        "vacant": 0.06,
        "divorce": 0.11,
        "bankruptcy": 0.09,
        "fsbo": 0.08,
        "absentee": 0.04,
        "inherited": 0.14,
    }
    DEFAULT_CONVERSION_RATE: float = 0.10

    # --- Scheduler tuning ---
    SCHED_BROAD_INTERVAL_MINUTES: int = 360
    SCHED_NARROW_INTERVAL_MINUTES: int = 1440  # daily
    SCHED_PREDICT_INTERVAL_MINUTES: int = 720


settings = Settings()
