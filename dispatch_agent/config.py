"""Runtime configuration gathered from environment variables.

Settings are read when `Settings.from_env()` is called, not at import, so the
CLI and server can load `.env` and apply flag overrides first.
"""

from __future__ import annotations

import os

from pydantic import BaseModel


_FALSY = ("0", "false", "False", "no", "")


def load_dotenv(path: str = ".env") -> None:
    """Copy KEY=VALUE lines from a .env file into os.environ.

    Variables already set in the environment win.
    """
    if not os.path.isfile(path):
        return
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    continue
                key, value = line.split("=", 1)
                os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))
    except OSError:
        # Unreadable .env is ignored
        pass


def env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default) not in _FALSY


class Settings(BaseModel):
    api_key: str = ""
    api_base: str = "https://api.anthropic.com"
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    llm_timeout: float = 120.0
    max_retries: int = 2
    retry_base_delay: float = 1.0
    max_iterations: int = 5
    backend_url: str = "http://localhost:8080"
    backend_timeout: float = 30.0
    offline: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            api_base=os.getenv("ANTHROPIC_API_BASE", "https://api.anthropic.com"),
            model=os.getenv("MODEL_NAME", "claude-sonnet-4-20250514"),
            max_tokens=int(os.getenv("MODEL_MAX_TOKENS", "4096")),
            llm_timeout=float(os.getenv("MODEL_TIMEOUT", "120")),
            max_retries=int(os.getenv("MODEL_MAX_RETRIES", "2")),
            retry_base_delay=float(os.getenv("MODEL_RETRY_BASE_DELAY", "1.0")),
            max_iterations=int(os.getenv("AGENT_MAX_ITERATIONS", "5")),
            backend_url=os.getenv("ILP_BACKEND_URL", "http://localhost:8080"),
            backend_timeout=float(os.getenv("BACKEND_TIMEOUT", "30")),
            offline=env_flag("AGENT_OFFLINE"),
        )


__all__ = ["Settings", "load_dotenv", "env_flag"]
