from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from listing_extractor.schemas.listing import UNSPECIFIED_DISTRICT


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "listing-extractor"
    environment: str = "dev"
    log_level: str = "INFO"

    base_url: str = "https://www.avito.ru"
    city: str = "ulyanovsk"
    search_path: str = "kvartiry/prodam/vtorichka-ASgBAQICAUSSA8YQAUDmBxSMUg"
    pages: int = 3
    use_saved_html: bool = True
    cache_dir: Path = Path(".")

    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    accept_language: str = "ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7"
    request_timeout_seconds: float = 15
    min_delay_seconds: float = 2
    max_delay_seconds: float = 5

    parse_error_log: Path = Path("parse_errors.log")
    load_error_log: Path = Path("load_errors.log")

    block_marker: str = "Доступ ограничен"
    unspecified_district: str = UNSPECIFIED_DISTRICT


@lru_cache
def get_settings() -> Settings:
    return Settings()
