from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env", "insight_engine/.env"), env_ignore_empty=True, extra="ignore"
    )
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "insight-engine"
    ENVIRONMENT: Literal["local", "staging", "development", "production"] = "local"
    CORS_ENABLED: bool = True
    UVICORN_RELOAD: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Connection pools, one per host:port:database
    POOL_MAX_SIZE: int = 10
    POOL_IDLE_TIMEOUT_S: int = 30
    POOL_CONNECT_TIMEOUT_S: float = 5.0

    # Statement execution
    QUERY_TIMEOUT_MS: int = 30_000
    MAX_RESULT_ROWS: int = 50_000
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 5_000

    # Result cache
    CACHE_ENABLED: bool = True
    CACHE_BACKEND: Literal["memory", "redis"] = "memory"
    CACHE_TTL_S: int = 300
    CACHE_MAX_ENTRIES: int = 1_000
    CACHE_KEY_PREFIX: str = "insight:query"

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    # Analytics augmentation: "degrade" drops a failing analytic, "fail" fails the request
    ANALYTICS_FAILURE_MODE: Literal["degrade", "fail"] = "degrade"

    # Local collaborators
    SEMANTIC_MODELS_DIR: str = ""
    CONNECTIONS_FILE: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def IS_LOCAL(self) -> bool:
        return self.ENVIRONMENT == "local"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def REDIS_URL(self) -> str:
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


settings = Settings()
