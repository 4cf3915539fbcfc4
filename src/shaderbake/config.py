"""Application configuration contract."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(alias="APP_ENV", default="dev")
    log_level: str = Field(alias="LOG_LEVEL", default="INFO")
    log_format: str = Field(alias="SHADERBAKE_LOG_FORMAT", default="auto")

    config_file_name: str = Field(alias="SHADERBAKE_CONFIG_FILE", default="shaderbake.json")
    cache_dir_name: str = Field(alias="SHADERBAKE_CACHE_DIRNAME", default="__shaderbake_cache__")
    index_file_name: str = Field(alias="SHADERBAKE_INDEX_FILE", default="index.json")
    workers: int = Field(alias="SHADERBAKE_WORKERS", default=0)

    glslc: str = Field(alias="SHADERBAKE_GLSLC", default="glslc")
    target_env: str = Field(alias="SHADERBAKE_TARGET_ENV", default="vulkan1.2")
    compile_timeout_seconds: int = Field(
        alias="SHADERBAKE_COMPILE_TIMEOUT_SECONDS", default=120
    )


def validate_settings_for_env(settings: Settings) -> None:
    invalid: list[str] = []

    bare_names = {
        "SHADERBAKE_CONFIG_FILE": settings.config_file_name,
        "SHADERBAKE_CACHE_DIRNAME": settings.cache_dir_name,
        "SHADERBAKE_INDEX_FILE": settings.index_file_name,
    }
    for key, value in bare_names.items():
        clean = value.strip()
        if not clean or "/" in clean or "\\" in clean or clean in {".", ".."}:
            invalid.append(f"{key}(bare file name required)")

    if settings.log_format.lower() not in {"auto", "console", "json"}:
        invalid.append("SHADERBAKE_LOG_FORMAT(auto, console or json)")
    if settings.workers < 0:
        invalid.append("SHADERBAKE_WORKERS(must be >= 0)")
    if settings.compile_timeout_seconds <= 0:
        invalid.append("SHADERBAKE_COMPILE_TIMEOUT_SECONDS(must be > 0)")
    if not settings.glslc.strip():
        invalid.append("SHADERBAKE_GLSLC")

    if invalid:
        keys = ", ".join(sorted(set(invalid)))
        raise ValueError(f"invalid configuration: {keys}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
