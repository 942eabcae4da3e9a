"""Filesystem-backed blob store provider.

Stores each object as a file under ``blob_root_dir`` at its key path, with
its content type and string properties in a JSON sidecar next to it
(``<file>.meta.json``).  Blocking file I/O runs via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote

import structlog

from docindex.interfaces.blob_store_provider import IBlobStoreProvider
from docindex.models.storage import BlobFile, BlobObject, BlobPutResult
from docindex.utils.errors import BlobStoreError, NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_SIDECAR_SUFFIX = ".meta.json"


class LocalBlobStoreProvider(IBlobStoreProvider):
    """Blob store on the local filesystem.

    URLs are ``{public_base_url}/{key}`` when a public base URL is
    configured (e.g. a static file server in front of the directory),
    otherwise ``file://`` URIs.
    """

    def __init__(self, root_dir: str | Path, public_base_url: str = "") -> None:
        self._root = Path(root_dir).resolve()
        self._public_base_url = public_base_url.rstrip("/")

    # ------------------------------------------------------------------
    # IBlobStoreProvider implementation
    # ------------------------------------------------------------------

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> BlobPutResult:
        path = self._path_for(key)
        sidecar = {"contentType": content_type, "metadata": dict(metadata or {})}
        try:
            await asyncio.to_thread(self._write_sync, path, data, sidecar)
        except OSError as exc:
            raise BlobStoreError(
                message=f"Failed to write blob {key}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("blob_stored", key=key, size=len(data), content_type=content_type)
        return BlobPutResult(key=key, url=self._url_for(key, path))

    async def get(self, key: str) -> BlobObject:
        path = self._path_for(key)
        if not path.is_file():
            raise NotFoundError(
                message=f"Blob {key} not found",
                provider_name=self.get_provider_name(),
            )
        try:
            data, sidecar = await asyncio.to_thread(self._read_sync, path)
        except OSError as exc:
            raise BlobStoreError(
                message=f"Failed to read blob {key}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return BlobObject(
            key=key,
            data=data,
            content_type=sidecar.get("contentType", "application/octet-stream"),
            metadata=sidecar.get("metadata", {}),
        )

    async def delete(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            removed = await asyncio.to_thread(self._delete_sync, path)
        except OSError as exc:
            raise BlobStoreError(
                message=f"Failed to delete blob {key}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("blob_deleted", key=key, existed=removed)
        return removed

    async def list(self, prefix: str = "") -> list[BlobFile]:
        """List objects under *prefix*, newest first, named by original upload name."""
        try:
            files = await asyncio.to_thread(self._list_sync, prefix)
        except OSError as exc:
            raise BlobStoreError(
                message=f"Failed to list blobs under {prefix!r}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        files.sort(key=lambda f: f.last_modified, reverse=True)
        return files

    async def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()

    def get_provider_name(self) -> str:
        return "local_blob"

    # ------------------------------------------------------------------
    # Sync helpers (executed via asyncio.to_thread)
    # ------------------------------------------------------------------

    @staticmethod
    def _write_sync(path: Path, data: bytes, sidecar: dict) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        Path(f"{path}{_SIDECAR_SUFFIX}").write_text(json.dumps(sidecar), encoding="utf-8")

    @staticmethod
    def _read_sync(path: Path) -> tuple[bytes, dict]:
        sidecar_path = Path(f"{path}{_SIDECAR_SUFFIX}")
        sidecar = (
            json.loads(sidecar_path.read_text(encoding="utf-8")) if sidecar_path.is_file() else {}
        )
        return path.read_bytes(), sidecar

    @staticmethod
    def _delete_sync(path: Path) -> bool:
        existed = path.is_file()
        path.unlink(missing_ok=True)
        Path(f"{path}{_SIDECAR_SUFFIX}").unlink(missing_ok=True)
        return existed

    def _list_sync(self, prefix: str) -> list[BlobFile]:
        if not self._root.is_dir():
            return []
        files: list[BlobFile] = []
        for dirpath, _dirnames, filenames in os.walk(self._root):
            for filename in filenames:
                if filename.endswith(_SIDECAR_SUFFIX):
                    continue
                path = Path(dirpath) / filename
                key = path.relative_to(self._root).as_posix()
                if not key.startswith(prefix):
                    continue
                _, sidecar = self._read_sync(path)
                stat = path.stat()
                metadata = sidecar.get("metadata", {})
                files.append(
                    BlobFile(
                        key=key,
                        name=metadata.get("originalName", filename),
                        url=self._url_for(key, path),
                        size=stat.st_size,
                        content_type=sidecar.get("contentType", "application/octet-stream"),
                        last_modified=datetime.fromtimestamp(
                            stat.st_mtime, tz=timezone.utc  # noqa: UP017
                        ),
                    )
                )
        return files

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _path_for(self, key: str) -> Path:
        """Resolve *key* under the root, refusing keys that escape it."""
        if not key or key.startswith("/") or "\\" in key:
            raise BlobStoreError(
                message=f"Invalid blob key {key!r}",
                provider_name=self.get_provider_name(),
            )
        path = (self._root / key).resolve()
        if self._root not in path.parents:
            raise BlobStoreError(
                message=f"Blob key {key!r} escapes the store root",
                provider_name=self.get_provider_name(),
            )
        return path

    def _url_for(self, key: str, path: Path) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{quote(key)}"
        return path.as_uri()
