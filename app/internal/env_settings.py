import pathlib

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class DBSettings(BaseModel):
    sqlite_path: str = "db.sqlite"
    """Relative path to the sqlite database given the config directory. If absolute, it ignores the config dir location."""
    use_postgres: bool = False
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "shelf"
    postgres_user: str = "shelf"
    postgres_password: str = "password"
    postgres_ssl_mode: str = "prefer"

    # Connection Pool Configuration
    pool_size: int = 10
    """SQLAlchemy connection pool size (number of connections to maintain in pool)"""
    max_overflow: int = 20
    """Maximum number of overflow connections beyond pool_size"""
    pool_timeout: int = 30
    """Timeout (seconds) to wait for a connection from the pool"""
    pool_pre_ping: bool = True
    """Enable ping to detect stale connections before using them"""


class AuthSettings(BaseModel):
    jwt_secret_key: str = "change-me-to-a-long-random-secret-value"
    """Secret used to sign access and refresh tokens"""
    jwt_algorithm: str = "HS256"
    access_token_expiry_minutes: int = 60
    refresh_token_expiry_days: int = 7


class ApplicationSettings(BaseModel):
    debug: bool = False
    openapi_enabled: bool = False
    config_dir: str = "/config"
    port: int = 8000
    version: str = "local"
    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR)"""
    log_format: str = "text"
    """Log format: 'text' for human-readable, 'json' for machine-readable"""
    log_file: str | None = None
    """Optional log file path (relative to config_dir/logs/). If not set, logs to stdout only"""

    google_books_api_key: str = ""
    """Optional Google Books API key (works without key but has rate limits)"""

    google_books_timeout: int = 10
    """Total timeout (seconds) for a single Google Books request"""

    # Cache TTL Settings (seconds)
    search_cache_ttl: int = 3600
    """TTL for book search results (default: 1 hour)"""

    search_cache_maxsize: int = 256
    """Maximum number of cached search queries"""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(  # pyright: ignore[reportUnannotatedClassAttribute]
        env_prefix="SHELF_",
        env_nested_delimiter="__",
        nested_model_default_partial_update=True,
        env_file=(".env.local", ".env"),
        extra="ignore",
    )

    db: DBSettings = DBSettings()
    auth: AuthSettings = AuthSettings()
    app: ApplicationSettings = ApplicationSettings()

    def get_sqlite_path(self):
        if self.db.sqlite_path.startswith("/"):
            return self.db.sqlite_path
        return str(pathlib.Path(self.app.config_dir) / self.db.sqlite_path)
