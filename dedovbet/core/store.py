from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .config import get_settings
from .errors import StoreError


logger = logging.getLogger(__name__)

AccountDict = dict[str, Any]


class UserFile:
    """The flat JSON file holding every account and its transaction log.

    Each call reads or rewrites the whole collection. There is no locking:
    two writers racing on the same file resolve as last-write-wins.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> list[AccountDict]:
        if not self.path.exists():
            self.write([])
            return []
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("store.read_failed", extra={"path": str(self.path)})
            raise StoreError("Failed to read user data") from exc

        if not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("store.corrupt", extra={"path": str(self.path)})
            raise StoreError("User data file is corrupt") from exc
        if not isinstance(data, list):
            raise StoreError("User data file is corrupt")
        return data

    def write(self, accounts: list[AccountDict]) -> None:
        payload = json.dumps(accounts, indent=2, ensure_ascii=False)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=self.path.name + ".", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self.path)
            finally:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
        except OSError as exc:
            logger.error("store.write_failed", extra={"path": str(self.path)})
            raise StoreError("Failed to save user data") from exc


settings = get_settings()
user_file = UserFile(settings.users_file)


def init_store() -> None:
    user_file.read()


def get_user_file() -> UserFile:
    return user_file


def set_user_file(new_file: UserFile) -> None:
    global user_file
    user_file = new_file
