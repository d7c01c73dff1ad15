"""On-disk databank driver.

Each record is one JSON file in a hash-sharded directory tree (see
`databank.sharding`). There is no index: search reads every file of a
type. Blocking file system calls run in worker threads.

Create and update check for the file and then write it. Nothing locks
the file between the two steps, so two processes creating the same
record can both succeed; within one bank instance the per-record locks
of `Databank` serialize them.
"""

import asyncio
import logging
import shutil
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..codec import decode, encode
from ..errors import AlreadyExistsError, CodecError, NoSuchThingError
from ..matcher import matches_criteria
from ..sharding import (
    DEFAULT_HASH_DEPTH,
    DEFAULT_MODE,
    ensure_dir,
    make_temp_dir,
    shard_dirname,
    shard_filename,
    walk_records,
)
from .base import Databank

logger = logging.getLogger(__name__)

DEFAULT_ROOT = "/var/lib/diskdatabank/"


class DiskDatabank(Databank):
    """Stores records as JSON files under a root directory.

    With ``mktmp=True`` the bank allocates a fresh random directory under
    `tmp_root` (the system temp directory by default) at connect time and
    removes it, with everything in it, at disconnect.
    """

    driver = "disk"
    native_errors = (OSError,)

    def __init__(
        self,
        root: str | Path | None = None,
        hash_depth: int = DEFAULT_HASH_DEPTH,
        mode: int = DEFAULT_MODE,
        mktmp: bool = False,
        tmp_root: str | Path | None = None,
        schema: Mapping[str, Any] | None = None,
    ):
        super().__init__(schema)
        if hash_depth < 0:
            raise ValueError(f"hash_depth must not be negative: {hash_depth}")
        self.root = Path(root or DEFAULT_ROOT)
        self.hash_depth = hash_depth
        self.mode = mode
        self.mktmp = mktmp
        self.tmp_root = Path(tmp_root or tempfile.gettempdir())
        self._configured_root = self.root

    def to_dirname(self, type_: str, id_: Any) -> Path:
        return shard_dirname(self.root, type_, id_, self.hash_depth)

    def to_filename(self, type_: str, id_: Any) -> Path:
        return shard_filename(self.root, type_, id_, self.hash_depth)

    async def _connect(self, params: dict[str, Any]) -> None:
        if self.mktmp:
            self.root = await asyncio.to_thread(make_temp_dir, self.tmp_root, self.mode)
        else:
            await asyncio.to_thread(
                self.root.mkdir, mode=self.mode, parents=True, exist_ok=True
            )

    async def _disconnect(self) -> None:
        if self.mktmp:
            await asyncio.to_thread(shutil.rmtree, self.root)
            logger.debug(f"Removed temporary databank root {self.root}")
            self.root = self._configured_root

    async def _create(self, type_: str, id_: Any, value: Any) -> Any:
        await asyncio.to_thread(self._create_file, type_, id_, encode(value))
        return value

    async def _read(self, type_: str, id_: Any) -> Any:
        data = await asyncio.to_thread(self._read_file, type_, id_)
        return self._decode(data, type_, id_)

    async def _update(self, type_: str, id_: Any, value: Any) -> Any:
        await asyncio.to_thread(self._update_file, type_, id_, encode(value))
        return value

    async def _delete(self, type_: str, id_: Any) -> None:
        try:
            await asyncio.to_thread(self.to_filename(type_, id_).unlink)
        except FileNotFoundError:
            raise NoSuchThingError(type_, str(id_)) from None

    async def _search(self, type_: str, criteria: dict[str, Any]) -> list[Any]:
        return await asyncio.to_thread(self._scan_type, type_, criteria)

    # Blocking helpers

    def _create_file(self, type_: str, id_: Any, data: bytes) -> None:
        dirname = self.to_dirname(type_, id_)
        filename = self.to_filename(type_, id_)
        ensure_dir(self.root, dirname, self.mode)
        if filename.exists():
            raise AlreadyExistsError(type_, str(id_))
        self._write_atomic(filename, data)

    def _update_file(self, type_: str, id_: Any, data: bytes) -> None:
        filename = self.to_filename(type_, id_)
        if not filename.exists():
            raise NoSuchThingError(type_, str(id_))
        self._write_atomic(filename, data)

    def _read_file(self, type_: str, id_: Any) -> bytes:
        try:
            return self.to_filename(type_, id_).read_bytes()
        except FileNotFoundError:
            raise NoSuchThingError(type_, str(id_)) from None

    def _write_atomic(self, path: Path, data: bytes) -> None:
        """Write to a temp file beside `path`, then rename it into place."""
        temp_fd, temp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with open(temp_fd, "wb") as f:
                f.write(data)
            Path(temp_path).replace(path)
        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise

    def _scan_type(self, type_: str, criteria: dict[str, Any]) -> list[Any]:
        results = []
        for path in walk_records(self.root / type_):
            try:
                data = path.read_bytes()
            except FileNotFoundError:
                # Deleted while we were walking.
                continue
            # File names are hashes of ids, so the id of a bad file is unknown.
            value = self._decode(data, type_)
            if matches_criteria(value, criteria):
                results.append(value)
        return results

    def _decode(self, data: bytes, type_: str, id_: Any = None) -> Any:
        try:
            return decode(data)
        except CodecError as e:
            e.type = type_
            if id_ is not None:
                e.id = str(id_)
            raise
