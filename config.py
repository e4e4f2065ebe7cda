import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    # Store settings
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///library.db")
    # Explicit sqlite file path, wins over database_url when set
    db_file: Optional[str] = os.getenv("LIBRARY_DB_FILE")

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Library Management API")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _env_bool("DEBUG", "False")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def database_file(self) -> str:
        """Resolve the sqlite file the store should open."""
        if self.db_file:
            return self.db_file
        return sqlite_path_from_url(self.database_url)


def sqlite_path_from_url(url: str) -> str:
    """Turn ``sqlite:///relative.db`` or ``sqlite:////abs/path.db`` into a file path."""
    prefix = "sqlite:///"
    if not url.startswith(prefix):
        raise ValueError(f"Unsupported DATABASE_URL {url!r}; expected {prefix}<path>")
    path = url[len(prefix):]
    if not path or path == ":memory:":
        raise ValueError("DATABASE_URL must point at a sqlite file")
    return path


settings = Settings()
