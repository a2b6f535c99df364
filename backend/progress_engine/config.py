import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    storage_key: str = Field("palliative-care-game-state", alias="PROGRESS_ENGINE_STORAGE_KEY")
    debounce_seconds: float = Field(60.0, ge=0.0, alias="PROGRESS_ENGINE_DEBOUNCE_SECONDS")
    multi_tab_window_ms: int = Field(5000, ge=0, alias="PROGRESS_ENGINE_MULTI_TAB_WINDOW_MS")
    reduced_attempt_limit: int = Field(10, ge=0, alias="PROGRESS_ENGINE_REDUCED_ATTEMPT_LIMIT")
    host_search_depth: int = Field(7, ge=1, alias="PROGRESS_ENGINE_HOST_SEARCH_DEPTH")
    scorm12_suspend_limit: int = Field(3200, gt=0, alias="PROGRESS_ENGINE_SCORM12_SUSPEND_LIMIT")
    scorm2004_suspend_limit: int = Field(60000, gt=0, alias="PROGRESS_ENGINE_SCORM2004_SUSPEND_LIMIT")
    local_storage_mode: Literal["file", "database", "memory"] = Field(
        "file",
        alias="PROGRESS_ENGINE_LOCAL_STORAGE_MODE",
    )
    local_storage_path: Optional[str] = Field(None, alias="PROGRESS_ENGINE_LOCAL_STORAGE_PATH")
    database_url: Optional[str] = Field(None, alias="PROGRESS_ENGINE_DATABASE_URL")
    database_pool_size: int = Field(5, alias="PROGRESS_ENGINE_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(5, alias="PROGRESS_ENGINE_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="PROGRESS_ENGINE_DATABASE_ECHO")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        populate_by_name = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid progress engine configuration: {exc}") from exc
