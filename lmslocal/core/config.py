from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    API_BASE_URL: str = "http://localhost:3015"
    API_TIMEOUT_SECONDS: float = 10.0
    SECRET_KEY: str = "YOUR_SECRET_KEY_HERE"
    LOG_LEVEL: str = "INFO"

    # Standings
    STANDINGS_PAGE_SIZE: int = 25
    STANDINGS_PAGINATION_THRESHOLD: int = 50
    PICK_VISIBILITY_MIN_ACTIVE: int = 3 # picks stay hidden while active players <= this
    STATS_WINDOW: int = 5
    RECENT_FORM_SIZE: int = 3
    STANDINGS_FETCH_PAGE_SIZE: int = 200 # largest page the remote API serves
    STANDINGS_TRACKED_LIMIT: int = 500 # (user, competition) snapshots kept for regression checks

    # Cache lifetimes (seconds)
    CACHE_TTL_ROUNDS: int = 30 * 60
    CACHE_TTL_FIXTURES: int = 30 * 60
    CACHE_TTL_STANDINGS: int = 60 * 60
    CACHE_TTL_DASHBOARD: int = 5 * 60
    CACHE_TTL_PICKS: int = 60 * 60


settings = Settings()
