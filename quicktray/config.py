"""Runtime configuration loaded from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class QuickTrayConfig:
    """Settings for the history engine and its collaborators."""

    home: Path
    poll_interval: float = 0.5
    monitor_enabled: bool = True
    embedding_model: Optional[str] = None
    embedding_api_base: Optional[str] = None
    embedding_api_key: Optional[str] = None
    detect_local_providers: bool = True
    request_timeout: float = 30.0
    max_retries: int = 2
    cooldown_time: float = 60.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "QuickTrayConfig":
        home = os.getenv("QUICKTRAY_HOME", "~/.quicktray")
        return cls(
            home=Path(os.path.expanduser(home)),
            poll_interval=float(os.getenv("QUICKTRAY_POLL_INTERVAL", "0.5")),
            monitor_enabled=_env_bool("QUICKTRAY_MONITOR"),
            embedding_model=os.getenv("EMBEDDING_MODEL") or None,
            embedding_api_base=os.getenv("EMBEDDING_API_BASE") or None,
            embedding_api_key=os.getenv("EMBEDDING_API_KEY") or None,
            detect_local_providers=_env_bool("EMBEDDING_DETECT_LOCAL"),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30")),
            max_retries=int(os.getenv("MAX_RETRIES", "2")),
            cooldown_time=float(os.getenv("COOLDOWN_TIME", "60")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def history_path(self) -> Path:
        return self.home / "items.json"

    @property
    def settings_path(self) -> Path:
        return self.home / "settings.json"
