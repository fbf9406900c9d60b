from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="MARKFACET_", extra="ignore"
    )

    port: int = 8000
    db_path: str = "~/.markfacet/bookmarks.db"
    bookmarks_file: str | None = None
    default_user_id: str | None = None
    log_level: str = "INFO"

    @property
    def resolved_db_path(self) -> str:
        return str(Path(self.db_path).expanduser())

    @property
    def resolved_bookmarks_file(self) -> str | None:
        if not self.bookmarks_file:
            return None
        return str(Path(self.bookmarks_file).expanduser())


settings = Settings()
