import json
import logging
import os
from functools import lru_cache
from pathlib import Path

from models import FinancialData

logger = logging.getLogger(__name__)


class Settings:
    def __init__(
        self,
        data_dir: Path,
        timezone: str,
        secret_key: str,
        backup_interval_minutes: float,
        recurring_interval_hours: float,
        financial_data_path: Path,
        revoked_tokens_path: Path,
        created_tokens_path: Path,
        scheduler_enabled: bool = True,
    ) -> None:
        self.data_dir = data_dir
        self.timezone = timezone
        self.secret_key = secret_key
        self.backup_interval_minutes = backup_interval_minutes
        self.recurring_interval_hours = recurring_interval_hours
        self.financial_data_path = financial_data_path
        self.revoked_tokens_path = revoked_tokens_path
        self.created_tokens_path = created_tokens_path
        self.scheduler_enabled = scheduler_enabled


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("SPENDINGS_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    timezone = os.getenv("SPENDINGS_TIMEZONE", "Europe/Moscow")
    secret_key = os.getenv(
        "SPENDINGS_SECRET_KEY",
        "7d0c9f0e4b1a4a3f8d3c5e2b9a6f1d0c4e8b2a7f6d5c3b1a0e9f8d7c6b5a4f3e",
    )
    backup_interval_minutes = float(
        os.getenv("SPENDINGS_BACKUP_INTERVAL_MINUTES", "60")
    )
    recurring_interval_hours = float(
        os.getenv("SPENDINGS_RECURRING_INTERVAL_HOURS", "24")
    )
    financial_data_path = Path(
        os.getenv("SPENDINGS_FINANCIAL_DATA", str(data_dir / "financial_data.json"))
    )
    revoked_tokens_path = Path(
        os.getenv("SPENDINGS_REVOKED_TOKENS", str(data_dir / "blocked_tokens.json"))
    )
    created_tokens_path = Path(
        os.getenv("SPENDINGS_CREATED_TOKENS", str(data_dir / "created_tokens.csv"))
    )
    scheduler_enabled = os.getenv("SPENDINGS_SCHEDULER_ENABLED", "1") != "0"
    return Settings(
        data_dir=data_dir,
        timezone=timezone,
        secret_key=secret_key,
        backup_interval_minutes=backup_interval_minutes,
        recurring_interval_hours=recurring_interval_hours,
        financial_data_path=financial_data_path,
        revoked_tokens_path=revoked_tokens_path,
        created_tokens_path=created_tokens_path,
        scheduler_enabled=scheduler_enabled,
    )


def _load_json(path: Path) -> object:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_financial_data(path: Path) -> FinancialData:
    """Load the initial transactions and categories, or start empty."""
    try:
        payload = _load_json(path)
        if not isinstance(payload, dict):
            raise ValueError("financial data must be a JSON object")
        return FinancialData.from_dict(payload)
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.warning(f"Can't load financial data from {path}: {exc}")
        return FinancialData()


def load_revoked_tokens(path: Path) -> list[str]:
    try:
        payload = _load_json(path)
        if not isinstance(payload, list):
            raise ValueError("revoked tokens must be a JSON list")
        return [str(token_id) for token_id in payload]
    except (OSError, ValueError) as exc:
        logger.warning(f"Can't load revoked tokens from {path}: {exc}")
        return []
