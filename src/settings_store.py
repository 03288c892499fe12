from __future__ import annotations

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from threading import RLock
from typing import Dict, Optional

from .config_service import DEFAULT_MODEL
from .logger_factory import get_logger
from .utils.logfmt import fmt

CURRENT_MODEL_KEY = "CURRENT_MODEL"


class SettingsStoreError(RuntimeError):
    pass


class KeyValueStore(ABC):
    """Narrow async key-value interface for externally durable settings."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        ...


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore(KeyValueStore):
    """Key-value store persisted as one JSON object.

    Every read goes to disk so separate processes sharing the file observe each
    other's writes. Writes replace the file atomically; concurrent writers race
    and the last one wins.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._lock = RLock()
        self.log = get_logger("JsonFileStore")

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SettingsStoreError(f"cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise SettingsStoreError(f"{self.path} does not hold a JSON object")
        return data

    def _get_sync(self, key: str) -> Optional[str]:
        with self._lock:
            v = self._load().get(key)
        return None if v is None else str(v)

    def _put_sync(self, key: str, value: str) -> None:
        with self._lock:
            try:
                data = self._load()
            except SettingsStoreError as e:
                # An unreadable file must not block every later write
                self.log.warning(f"settings-file-reset {fmt('path', self.path)} {fmt('err', e)}")
                data = {}
            data[key] = value
            tmp_name = None
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                # One temp file per write; other processes may be writing beside us
                with tempfile.NamedTemporaryFile(
                    "w",
                    encoding="utf-8",
                    dir=self.path.parent,
                    prefix=self.path.name + ".",
                    suffix=".tmp",
                    delete=False,
                ) as f:
                    tmp_name = f.name
                    json.dump(data, f, ensure_ascii=False, indent=2)
                os.replace(tmp_name, self.path)
            except OSError as e:
                if tmp_name is not None and os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise SettingsStoreError(f"cannot write {self.path}: {e}") from e

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get_sync, key)

    async def put(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._put_sync, key, value)


class SettingsService:
    """Current-model setting on top of a KeyValueStore.

    Reads never fail: an absent value or a store error yields the default.
    """

    def __init__(self, store: KeyValueStore, default_model: str = DEFAULT_MODEL):
        self.store = store
        self.default_model = default_model
        self.log = get_logger("Settings")

    async def get_current_model(self) -> str:
        try:
            model = await self.store.get(CURRENT_MODEL_KEY)
        except Exception as e:
            self.log.error(f"settings-get-error {fmt('key', CURRENT_MODEL_KEY)} {fmt('err', e)}")
            return self.default_model
        return model or self.default_model

    async def set_current_model(self, model: str) -> bool:
        try:
            await self.store.put(CURRENT_MODEL_KEY, model)
        except Exception as e:
            self.log.error(f"settings-put-error {fmt('key', CURRENT_MODEL_KEY)} {fmt('value', model)} {fmt('err', e)}")
            return False
        self.log.info(f"settings-put {fmt('key', CURRENT_MODEL_KEY)} {fmt('value', model)}")
        return True
