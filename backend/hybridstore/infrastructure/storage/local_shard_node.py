"""Local filesystem shard node.

Storage layout:
    <root_dir>/<address>/<stem>_<YYYYMMDD_HHmmss>_<rand>.<ext>

The extension records the payload's MIME type, so no sidecar metadata is
needed to read a blob back.
"""

import logging
import mimetypes
import os
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from hybridstore.application.interfaces import ShardNode
from hybridstore.domain.entities import (
    BINARY_MIME_TYPE,
    JSON_MIME_TYPE,
    BlobInfo,
    ShardPayload,
    ShardPointer,
)
from hybridstore.domain.exceptions import ShardNotFoundError, ShardWriteError

logger = logging.getLogger(__name__)

_TMP_SUFFIX = ".tmp"
_SHARD_ID_RE = re.compile(r"^[\w\-]+(\.[\w\-]+)?$")


def _datetime_stamp() -> str:
    """Return a UTC datetime stamp suitable for filenames: YYYYMMDD_HHmmss."""
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")


def _sanitise(name: str, max_len: int = 60) -> str:
    """Replace non-word characters with underscores and truncate."""
    return re.sub(r"[^\w\-]", "_", name)[:max_len].strip("_") or "blob"


def _extension_for(mime_type: str) -> str:
    if mime_type == JSON_MIME_TYPE:
        return ".json"
    return mimetypes.guess_extension(mime_type) or ".bin"


def _mime_for(shard_id: str) -> str:
    if shard_id.endswith(".json"):
        return JSON_MIME_TYPE
    return mimetypes.guess_type(shard_id)[0] or BINARY_MIME_TYPE


class LocalShardNode(ShardNode):
    """Infrastructure adapter: one directory acting as a storage node."""

    def __init__(self, address: str, root_dir: str | Path, quota_bytes: int | None = None):
        self.address = address
        self._dir = Path(root_dir) / address
        self._dir.mkdir(parents=True, exist_ok=True)
        self._quota_bytes = quota_bytes

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, shard_id: str) -> Path:
        if not _SHARD_ID_RE.match(shard_id):
            raise ShardNotFoundError(
                f"Invalid shard id '{shard_id}'", node_address=self.address, shard_id=shard_id
            )
        return self._dir / shard_id

    def _new_shard_id(self, payload: ShardPayload, name_hint: str) -> str:
        stem = _sanitise(Path(name_hint).stem if name_hint else "blob")
        return f"{stem}_{_datetime_stamp()}_{uuid4().hex[:8]}{_extension_for(payload.mime_type)}"

    # ── ShardNode ───────────────────────────────────────────────────

    async def put(self, payload: ShardPayload, shard_id: str | None = None, name_hint: str = "") -> ShardPointer:
        """Write atomically (temp file + rename).

        An in-place overwrite keeps ``shard_id`` unless the MIME type changed,
        in which case the payload gets a new id with the right extension.
        """
        if shard_id is not None and _mime_for(shard_id) != payload.mime_type:
            logger.info(
                "MIME type changed for %s/%s (%s → %s): writing a new blob",
                self.address, shard_id, _mime_for(shard_id), payload.mime_type,
            )
            shard_id = None
        if shard_id is None:
            shard_id = self._new_shard_id(payload, name_hint)

        dest = self._path(shard_id)
        tmp = dest.with_name(dest.name + _TMP_SUFFIX)
        try:
            tmp.write_bytes(payload.data)
            os.replace(tmp, dest)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise ShardWriteError(str(exc), node_address=self.address, shard_id=shard_id) from exc

        logger.info("Stored blob: %s/%s (%d bytes)", self.address, shard_id, payload.size)
        return ShardPointer(shard_id=shard_id, node_address=self.address)

    async def get(self, shard_id: str) -> ShardPayload:
        path = self._path(shard_id)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            raise ShardNotFoundError(
                "Blob not found", node_address=self.address, shard_id=shard_id
            ) from None
        except OSError as exc:
            raise ShardWriteError(str(exc), node_address=self.address, shard_id=shard_id) from exc
        return ShardPayload(data=data, mime_type=_mime_for(shard_id))

    async def remove(self, shard_id: str) -> None:
        path = self._path(shard_id)
        if not path.exists():
            raise ShardNotFoundError("Blob not found", node_address=self.address, shard_id=shard_id)
        try:
            path.unlink()
        except OSError as exc:
            raise ShardWriteError(str(exc), node_address=self.address, shard_id=shard_id) from exc
        logger.info("Deleted blob: %s/%s", self.address, shard_id)

    async def free_space(self) -> int | None:
        if self._quota_bytes is not None:
            used = sum(p.stat().st_size for p in self._dir.iterdir() if p.is_file())
            return max(self._quota_bytes - used, 0)
        return shutil.disk_usage(self._dir).free

    async def list_blobs(self) -> list[BlobInfo]:
        blobs: list[BlobInfo] = []
        for path in sorted(self._dir.iterdir()):
            if not path.is_file() or path.name.endswith(_TMP_SUFFIX):
                continue
            stat = path.stat()
            blobs.append(
                BlobInfo(
                    pointer=ShardPointer(shard_id=path.name, node_address=self.address),
                    size=stat.st_size,
                    modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return blobs
