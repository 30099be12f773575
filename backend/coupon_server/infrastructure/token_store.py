"""Durable Token Store — crash-consistent JSON file holding every token and redemption.

Invariants:
    - save() is the sole write path: temp file in the same directory, fsync, os.replace
    - A crash or failure mid-save never leaves a truncated canonical file
    - load() on a missing file initializes and persists an empty dataset
    - load() on unparsable content moves the file aside and reinitializes (never raises)
    - Every other OSError surfaces as StorageError
    - No isolation across load→save: callers hold their own lock (RedemptionEngine)
    - health_check() only reads: it never creates, recovers or rewrites the dataset file

Design Decisions:
    - Whole-document rewrite, no partial updates: the dataset is small and the
      atomic rename is the only consistency primitive needed
    - Corrupt files are renamed to <name>.corrupt-<timestamp> instead of deleted,
      so an operator can still inspect them
    - Blocking IO via asyncio.to_thread: load/save are awaitable suspension points
"""

import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from coupon_server.core.coupon_records import Dataset
from coupon_server.core.errors import StorageError

logger = logging.getLogger(__name__)


class TokenStore:
    """File-backed owner of the authoritative coupon dataset."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    async def load(self) -> Dataset:
        """Read the dataset, initializing or recovering the file as needed."""
        return await asyncio.to_thread(self._load_sync)

    async def save(self, dataset: Dataset) -> None:
        """Persist the full dataset atomically."""
        await asyncio.to_thread(self._save_sync, dataset)

    async def health_check(self) -> bool:
        """Readiness probe. Read-only: never initializes, recovers or rewrites the file."""
        try:
            await asyncio.to_thread(self._check_access_sync)
            return True
        except OSError as e:
            logger.error(f"Token store health check failed: {e}")
            return False

    # ─── sync implementation (runs in a worker thread) ─────────────

    def _check_access_sync(self) -> None:
        if self.path.exists():
            with self.path.open("rb") as handle:
                handle.read(1)
            return
        directory = self.path.parent
        while not directory.exists():
            directory = directory.parent
        if not directory.is_dir() or not os.access(directory, os.W_OK):
            raise PermissionError(f"{directory} is not a writable directory")

    def _load_sync(self) -> Dataset:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            logger.info(f"Dataset file {self.path} missing, initializing empty dataset")
            return self._initialize_empty()
        except OSError as e:
            logger.error(f"Failed to read dataset file {self.path}: {e}")
            raise StorageError(str(e), "read") from e

        if not raw.strip():
            logger.warning(f"Dataset file {self.path} is empty, initializing")
            return self._initialize_empty()

        try:
            return Dataset.from_dict(json.loads(raw))
        except ValueError as e:
            return self._recover_from_corruption(e)

    def _initialize_empty(self) -> Dataset:
        dataset = Dataset()
        self._save_sync(dataset)
        return dataset

    def _recover_from_corruption(self, cause: Exception) -> Dataset:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        backup = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        try:
            os.replace(self.path, backup)
            moved_to = str(backup)
        except OSError as e:
            # the empty rewrite below replaces the file anyway
            logger.error(f"Could not move corrupt dataset aside: {e}")
            moved_to = None
        logger.error(
            f"Dataset file {self.path} is corrupt ({cause}); all issued tokens "
            f"and redemptions in it are discarded. Corrupt copy: {moved_to}",
        )
        return self._initialize_empty()

    def _save_sync(self, dataset: Dataset) -> None:
        payload = json.dumps(dataset.to_dict(), indent=2, ensure_ascii=False)
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory,
            )
        except OSError as e:
            logger.error(f"Failed to prepare dataset write in {directory}: {e}")
            raise StorageError(str(e), "write") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            _discard(tmp_path)
            logger.error(f"Failed to write dataset file {self.path}: {e}")
            raise StorageError(str(e), "write") from e
        except BaseException:
            _discard(tmp_path)
            raise

        _fsync_directory(directory)


def _discard(tmp_path: str) -> None:
    try:
        os.unlink(tmp_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove temporary file {tmp_path}: {e}")


def _fsync_directory(directory: Path) -> None:
    """Make the rename itself durable (POSIX only)."""
    if os.name != "posix":
        return
    try:
        dir_fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError as e:
        logger.warning(f"Directory fsync failed for {directory}: {e}")
    finally:
        os.close(dir_fd)
