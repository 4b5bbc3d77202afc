"""Failure tolerant response cache for plain Gemini requests."""
from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

import httpx

from ..config import CacheSettings

LOGGER = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "gemini_"


class CacheBackend(Protocol):
    """Minimal key/value store the response cache writes through."""

    def get(self, key: str) -> dict[str, Any] | None:
        ...

    def set(self, key: str, value: dict[str, Any], ttl: int) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def clear(self) -> None:
        ...


class FileCacheBackend:
    """Store each entry as a JSON document named after its key."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def get(self, key: str) -> dict[str, Any] | None:
        path = self._path(key)
        if not path.exists():
            return None
        record = json.loads(path.read_text(encoding="utf-8"))
        expires_at = record.get("expires_at")
        if expires_at is not None and expires_at <= time.time():
            path.unlink(missing_ok=True)
            return None
        value = record.get("value")
        return value if isinstance(value, dict) else None

    def set(self, key: str, value: dict[str, Any], ttl: int) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        record = {"expires_at": time.time() + ttl if ttl > 0 else None, "value": value}
        tmp_path = self._path(key).with_suffix(".tmp")
        tmp_path.write_text(json.dumps(record), encoding="utf-8")
        tmp_path.replace(self._path(key))

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def clear(self) -> None:
        if not self._directory.exists():
            return
        for path in self._directory.glob(f"{CACHE_KEY_PREFIX}*.json"):
            path.unlink(missing_ok=True)


class ResponseCache:
    """Cache ``{body, status, headers}`` records keyed by URL and payload.

    Backend failures never reach the caller: reads degrade to a miss and
    writes to a no-op.
    """

    def __init__(self, backend: CacheBackend, *, ttl: int = 3600, enabled: bool = True) -> None:
        self._backend = backend
        self._ttl = ttl
        self.enabled = enabled

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> "ResponseCache":
        return cls(FileCacheBackend(settings.path), ttl=settings.ttl, enabled=settings.enabled)

    @staticmethod
    def generate_key(url: str, payload: Mapping[str, Any] | None) -> str:
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        digest = hashlib.sha256(f"{url}{canonical}".encode("utf-8")).hexdigest()
        return f"{CACHE_KEY_PREFIX}{digest}"

    def get(self, key: str) -> httpx.Response | None:
        if not self.enabled:
            return None
        try:
            record = self._backend.get(key)
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Cache read failed | key=%s error=%s", key, exc)
            return None
        if not record:
            return None
        try:
            return httpx.Response(
                status_code=int(record["status"]),
                headers=record.get("headers") or {},
                content=str(record["body"]).encode("utf-8"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            LOGGER.debug("Discarding malformed cache entry | key=%s error=%s", key, exc)
            return None

    def set(self, key: str, response: httpx.Response, ttl: int | None = None) -> None:
        if not self.enabled:
            return
        record = {
            "body": response.text,
            "status": response.status_code,
            "headers": {
                name: value
                for name, value in response.headers.items()
                if name.lower() not in {"content-encoding", "content-length", "transfer-encoding"}
            },
        }
        try:
            self._backend.set(key, record, self._ttl if ttl is None else ttl)
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Cache write failed | key=%s error=%s", key, exc)

    def delete(self, key: str) -> None:
        try:
            self._backend.delete(key)
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Cache delete failed | key=%s error=%s", key, exc)

    def clear(self) -> None:
        try:
            self._backend.clear()
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Cache clear failed | error=%s", exc)


__all__ = ["CacheBackend", "FileCacheBackend", "ResponseCache", "CACHE_KEY_PREFIX"]
