"""
JSON-file-backed account-config store.

The whole store is one JSON object keyed by account id, written
pretty-printed (2-space indent). Every operation re-reads the file; writes
replace it. There is no locking: concurrent administrative edits are last
writer wins, and a reader may observe either the old or the new document.

File I/O runs in the default executor so the event loop is never blocked.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from store.base import AccountConfigStore, StoreError
from store.types import AccountWebhookConfig

logger = logging.getLogger(__name__)


class JsonFileAccountConfigStore(AccountConfigStore):
    """
    Account configs persisted in a single JSON document.

    A missing file is an empty store. An unreadable or unparseable file
    raises StoreError.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    # ------------------------------------------------------------------
    # Raw document access
    # ------------------------------------------------------------------

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
            document = json.loads(raw) if raw.strip() else {}
        except (OSError, ValueError) as e:
            # ValueError covers both JSON and UTF-8 decode failures.
            raise StoreError(f"Failed to read {self.path}: {e}") from e

        if not isinstance(document, dict):
            raise StoreError(f"{self.path} does not contain a JSON object")
        return document

    def _write_document(self, document: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Failed to write {self.path}: {e}") from e

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    @staticmethod
    def _parse(account_id: str, entry: Any) -> AccountWebhookConfig:
        if not isinstance(entry, dict):
            raise StoreError(f"Entry for account {account_id} is not an object")
        try:
            return AccountWebhookConfig.model_validate({"id": account_id, **entry})
        except ValidationError as e:
            raise StoreError(f"Invalid entry for account {account_id}: {e}") from e

    # ------------------------------------------------------------------
    # AccountConfigStore
    # ------------------------------------------------------------------

    async def get(self, account_id: str) -> Optional[AccountWebhookConfig]:
        document = await self._run(self._read_document)
        entry = document.get(account_id)
        if entry is None:
            return None
        return self._parse(account_id, entry)

    async def upsert(self, config: AccountWebhookConfig) -> AccountWebhookConfig:
        document = await self._run(self._read_document)
        document[config.account_id] = config.to_document()
        await self._run(self._write_document, document)
        logger.info("Account config saved", extra={"account_id": config.account_id})
        return config

    async def delete(self, account_id: str) -> bool:
        document = await self._run(self._read_document)
        if account_id not in document:
            return False
        del document[account_id]
        await self._run(self._write_document, document)
        logger.info("Account config deleted", extra={"account_id": account_id})
        return True

    async def list_all(self) -> dict[str, AccountWebhookConfig]:
        document = await self._run(self._read_document)
        return {key: self._parse(key, entry) for key, entry in document.items()}
