from __future__ import annotations
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

def _int(name: str, default: int) -> int:
    v = os.getenv(name)
    if not v:
        return default
    try:
        return int(v)
    except ValueError:
        raise RuntimeError(f"Invalid integer for env var {name}: {v!r}")

def _float(name: str, default: float) -> float:
    v = os.getenv(name)
    if not v:
        return default
    try:
        return float(v)
    except ValueError:
        raise RuntimeError(f"Invalid number for env var {name}: {v!r}")

@dataclass(frozen=True)
class Settings:
    # Telemetry
    appinsights_connection_string: str | None = None
    log_level: str = "INFO"

    # Storage
    storage_backend: str = "azure"
    storage_connection_string: str | None = None
    storage_account_url: str | None = None
    threads_container: str = "threads"
    backup_container: str = "threads-backup"

    # Existence check before append-post
    exists_retry_attempts: int = 3
    exists_retry_delay_seconds: float = 3.0

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            appinsights_connection_string=os.getenv("APPLICATIONINSIGHTS_CONNECTION_STRING"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            storage_backend=os.getenv("STORAGE_BACKEND", "azure").lower(),
            # Functions hosts expose the account under AzureWebJobsStorage
            storage_connection_string=(
                os.getenv("AZURE_STORAGE_CONNECTION_STRING") or os.getenv("AzureWebJobsStorage")
            ),
            storage_account_url=os.getenv("AZURE_STORAGE_ACCOUNT_URL"),
            threads_container=os.getenv("THREADS_CONTAINER", "threads"),
            backup_container=os.getenv("BACKUP_CONTAINER", "threads-backup"),
            exists_retry_attempts=_int("THREAD_EXISTS_RETRY_ATTEMPTS", 3),
            exists_retry_delay_seconds=_float("THREAD_EXISTS_RETRY_DELAY_SECONDS", 3.0),
        )

    def require_storage_credential(self) -> None:
        if not (self.storage_connection_string or self.storage_account_url):
            raise RuntimeError(
                "Missing required env var: AZURE_STORAGE_CONNECTION_STRING "
                "(or AZURE_STORAGE_ACCOUNT_URL for Entra ID auth)"
            )

settings = Settings.from_env()
