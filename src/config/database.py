"""Database settings (``DB_*`` environment variables).

SQLite is the default so a checkout runs without a server; production
points ``DB_DRIVER`` at ``postgresql+psycopg2``.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class DatabaseSettings(BaseSettings):
    """
    Connection and pool configuration.

    Example:
        DB_DRIVER=postgresql+psycopg2
        DB_HOST=db.internal
        DB_NAME=recruitment
        DB_USER=recruit
        DB_PASSWORD=...
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    driver: str = Field(default="sqlite", description="SQLAlchemy dialect+driver")

    host: str = Field(default="localhost")
    port: int = Field(default=5432)
    name: str = Field(default="recruitment")
    user: str = Field(default="")
    password: str = Field(default="")

    sqlite_path: Path = Field(default=Path("data/recruitment.db"), description="SQLite file")

    pool_size: int = Field(default=10, ge=1, le=100)
    max_overflow: int = Field(default=20, ge=0, le=100)
    pool_timeout: int = Field(default=30, ge=1, description="Seconds to wait for a pooled connection")
    pool_recycle: int = Field(default=1800, ge=60, description="Connection lifetime in seconds")
    pool_pre_ping: bool = Field(default=True)

    echo_sql: bool = Field(default=False, description="Log every statement")
    query_timeout: int = Field(default=30, ge=1, description="Connect/lock timeout in seconds")

    @computed_field
    @property
    def is_sqlite(self) -> bool:
        return self.driver.lower().startswith("sqlite")

    @computed_field
    @property
    def is_postgres(self) -> bool:
        return self.driver.lower().startswith("postgres")

    @computed_field
    @property
    def url(self) -> str:
        """Synchronous connection URL; creates the SQLite directory if needed."""
        if self.is_sqlite:
            self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite:///{self.sqlite_path.absolute()}"

        return URL.create(
            drivername=self.driver,
            username=self.user or None,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.name,
        ).render_as_string(hide_password=False)

    def get_connect_args(self) -> dict:
        if self.is_sqlite:
            return {"check_same_thread": False, "timeout": self.query_timeout}
        return {"connect_timeout": self.query_timeout}


@lru_cache
def get_database_settings() -> DatabaseSettings:
    return DatabaseSettings()
