from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./continuum.db"
    sql_echo: bool = False
    log_level: str = "INFO"

    # Alembic - основной путь для продакшена, create_all удобен для локального запуска
    create_tables_on_startup: bool = True

    # Сколько раз повторять мутацию карточки после конфликта по (stream_id, version)
    version_conflict_retries: int = Field(3, ge=0)

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
