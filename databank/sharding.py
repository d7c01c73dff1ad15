"""Hash-sharded directory layout for the disk driver.

A record ``(type, id)`` lives at::

    root/<type>/<h[0:1]>/<h[0:2]>/.../<h[0:depth]>/<h>.json

where ``h`` is the URL-safe, unpadded base64 MD5 digest of ``str(id)``.
Hashing bounds the length of every path segment, removes characters that
are unsafe in file names, and spreads records evenly over at most 64
entries per directory level. Changing ``depth`` changes every path, so
it is fixed for the lifetime of a store.
"""

import base64
import hashlib
import logging
import os
import secrets
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_HASH_DEPTH = 3
DEFAULT_MODE = 0o755
TEMP_DIR_ATTEMPTS = 10


def id_hash(id_: object) -> str:
    """Return the file-system safe hash of an identifier."""
    digest = hashlib.md5(str(id_).encode("utf-8"), usedforsecurity=False).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def shard_dirname(root: Path, type_: str, id_: object, depth: int) -> Path:
    """Directory holding the record file for `(type_, id_)`."""
    hashed = id_hash(id_)
    dirname = Path(root) / type_
    for n in range(min(depth, len(hashed))):
        dirname = dirname / hashed[: n + 1]
    return dirname


def shard_filename(root: Path, type_: str, id_: object, depth: int) -> Path:
    """Full path of the record file for `(type_, id_)`."""
    return shard_dirname(root, type_, id_, depth) / f"{id_hash(id_)}.json"


def ensure_dir(root: Path, dirname: Path, mode: int = DEFAULT_MODE) -> None:
    """Create `dirname` and every missing ancestor below `root`.

    Walks from `root` toward the leaf, one level at a time. A directory
    created concurrently by someone else counts as success, so two
    writers racing on the same shard both proceed. `root` itself must
    already exist.
    """
    root = Path(root)
    current = root
    for part in Path(dirname).relative_to(root).parts:
        current = current / part
        try:
            current.mkdir(mode=mode)
        except FileExistsError:
            if not current.is_dir():
                raise NotADirectoryError(f"Not a directory: {current}") from None


def random_name(nbytes: int = 16) -> str:
    """Random, file-system safe directory name."""
    return secrets.token_urlsafe(nbytes)


def make_temp_dir(tmp_root: Path, mode: int = DEFAULT_MODE) -> Path:
    """Allocate a fresh, uniquely named directory under `tmp_root`.

    `mkdir` fails on an existing name, which makes the collision check
    and the allocation a single step.
    """
    tmp_root = Path(tmp_root)
    tmp_root.mkdir(parents=True, exist_ok=True)
    for _ in range(TEMP_DIR_ATTEMPTS):
        candidate = tmp_root / random_name()
        try:
            candidate.mkdir(mode=mode)
        except FileExistsError:
            logger.debug(f"Temporary directory name collision: {candidate}")
            continue
        logger.debug(f"Allocated temporary databank root {candidate}")
        return candidate
    raise FileExistsError(
        f"Could not allocate a temporary directory under {tmp_root} "
        f"after {TEMP_DIR_ATTEMPTS} attempts"
    )


def walk_records(type_dir: Path) -> list[Path]:
    """List every record file under a type directory.

    Pre-order traversal with directory entries sorted by name, so results
    are reproducible. Temporary files from in-progress writes are skipped.
    A missing type directory has no records.
    """
    found: list[Path] = []
    if not Path(type_dir).is_dir():
        return found

    for dirpath, dirnames, filenames in os.walk(type_dir):
        dirnames.sort()
        for filename in sorted(filenames):
            if filename.endswith(".json"):
                found.append(Path(dirpath) / filename)
    return found
