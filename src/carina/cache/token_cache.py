"""Persistent auth token cache."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from types import TracebackType

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from carina.core.exceptions import CacheError
from carina.utils.logging import get_logger

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class CacheData(BaseModel):
    """On-disk cache record."""

    model_config = ConfigDict(populate_by_name=True)

    tokens: dict[str, str] = Field(default_factory=dict)
    last_update_check: datetime = Field(default=EPOCH, alias="last-check")

    @field_validator("last_update_check")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class TokenCache:
    """One auth token per username plus the last update-check timestamp.

    The file is read once by ``load`` and written once by ``flush``; callers
    never touch it directly. Used as a context manager the cache flushes on
    exit, whether the block succeeded or raised.
    """

    def __init__(self, path: str | Path, data: CacheData | None = None):
        """Initialize cache.

        Args:
            path: File the cache is flushed to
            data: Loaded record (empty when None)
        """
        self.path = Path(path)
        self._data = data or CacheData()

    @classmethod
    def load(cls, path: str | Path) -> TokenCache:
        """Read the cache file.

        A missing or empty file yields an empty cache.

        Raises:
            CacheError: If the file cannot be read or is not a valid cache
        """
        cache_path = Path(path)
        if not cache_path.exists():
            logger.debug("token_cache_missing", path=str(cache_path))
            return cls(cache_path)

        try:
            raw = cache_path.read_text(encoding="utf-8")
        except OSError as e:
            raise CacheError(f"Unable to read cache {cache_path}: {e}") from e

        if not raw.strip():
            return cls(cache_path)

        try:
            data = CacheData.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            raise CacheError(f"Invalid cache file {cache_path}: {e}") from e

        logger.debug("token_cache_loaded", path=str(cache_path), tokens=len(data.tokens))
        return cls(cache_path, data)

    def lookup(self, username: str) -> str | None:
        return self._data.tokens.get(username)

    def store(self, username: str, token: str) -> None:
        self._data.tokens[username] = token
        logger.debug("token_cached", username=username)

    def last_check(self) -> datetime:
        return self._data.last_update_check

    def record_check(self, timestamp: datetime) -> None:
        self._data.last_update_check = timestamp

    def flush(self) -> None:
        """Write the cache back to its file with owner-only permissions.

        The file is replaced atomically.

        Raises:
            CacheError: If the file cannot be written
        """
        payload = self._data.model_dump_json(by_alias=True, indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".cache-", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CacheError(f"Unable to write cache {self.path}: {e}") from e

        logger.debug("token_cache_flushed", path=str(self.path))

    def __enter__(self) -> TokenCache:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.flush()
