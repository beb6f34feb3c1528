from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    database_url: str = "sqlite+aiosqlite:///./floatdb.db"

    # Buffer inserts and flush them as one bulk write per interval
    bulk_inserts: bool = True
    flush_interval_seconds: float = 1.0

    # Ranks at or beyond this many peers are not reported
    rank_cutoff: int = 1000

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"


settings = Settings()
