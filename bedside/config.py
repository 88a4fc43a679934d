import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load .env from the project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DEFAULT_DB_PATH = "/tmp/bedside.db"
DEFAULT_ALLOWED_ORIGINS = "http://localhost:3000,http://localhost:5173"


def _split_origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass
class Config:
    db_path: str = DEFAULT_DB_PATH
    db_busy_timeout: float = 5.0
    log_dir: str = "logs"
    log_level: str = "INFO"
    allowed_origins: List[str] = field(default_factory=lambda: _split_origins(DEFAULT_ALLOWED_ORIGINS))
    write_requests_per_minute: int = 120
    host: str = "0.0.0.0"
    port: int = 8000


def load_config() -> Config:
    """Read settings from the environment (after .env has been loaded)."""
    level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        level = "INFO"

    return Config(
        db_path=os.getenv("DB_PATH", DEFAULT_DB_PATH),
        db_busy_timeout=float(os.getenv("DB_BUSY_TIMEOUT", "5.0")),
        log_dir=os.getenv("LOG_DIR", "logs"),
        log_level=level,
        allowed_origins=_split_origins(os.getenv("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS)),
        write_requests_per_minute=int(os.getenv("WRITE_REQUESTS_PER_MINUTE", "120")),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


# Global instance
config = load_config()
