from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)


class Backupable(Protocol):
    def get_backup_data(self) -> Any: ...

    def get_backup_file_name(self) -> str: ...


def _to_jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, dict):
        return {str(key): _to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    return value


class BackupService:
    """Writes a timestamped JSON snapshot of every registered component."""

    def __init__(self, data_dir: Path, timezone: str = "UTC") -> None:
        self.data_dir = Path(data_dir)
        self.timezone = timezone
        self._backupables: list[Backupable] = []

    def register(self, backupable: Backupable) -> None:
        self._backupables.append(backupable)
        logger.info(f"Registered backupable: {backupable.get_backup_file_name()}")

    def perform_backup(self, now: Optional[datetime] = None) -> int:
        backupables = list(self._backupables)
        if not backupables:
            logger.debug("No backupables registered, skipping backup")
            return 0

        now = now or datetime.now(ZoneInfo(self.timezone))
        logger.info("Starting backup process")
        date_dir = self.data_dir / "backups" / now.strftime("%Y-%m-%d")
        date_dir.mkdir(parents=True, exist_ok=True)

        succeeded = 0
        for backupable in backupables:
            try:
                path = self._backup_object(backupable, date_dir, now)
            except (OSError, TypeError, ValueError) as exc:
                logger.error(
                    f"Failed to backup {backupable.get_backup_file_name()!r}: {exc}"
                )
                continue
            logger.debug(f"Backed up {backupable.get_backup_file_name()} to {path}")
            succeeded += 1

        logger.info(
            f"Backup completed: {succeeded}/{len(backupables)} "
            "objects backed up successfully"
        )
        return succeeded

    def _backup_object(
        self, backupable: Backupable, date_dir: Path, now: datetime
    ) -> Path:
        name = backupable.get_backup_file_name()
        if not name:
            raise ValueError("empty backup file name")
        data = backupable.get_backup_data()
        if data is None:
            raise ValueError("no backup data available")

        payload = json.dumps(_to_jsonable(data), indent=2, ensure_ascii=False)
        path = date_dir / f"{name}_backup_{now.strftime('%H-%M-%S')}.json"
        path.write_text(payload, encoding="utf-8")
        return path
