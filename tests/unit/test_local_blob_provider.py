"""Unit tests for LocalBlobStoreProvider."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from docindex.providers.blob_store.local_blob_provider import LocalBlobStoreProvider
from docindex.utils.errors import BlobStoreError, NotFoundError

_KEY = "alice/1700000000000_report.pdf"


class TestPutGet:
    @pytest.mark.asyncio
    async def test_round_trip_keeps_content_type_and_properties(
        self, blob_store: LocalBlobStoreProvider
    ) -> None:
        await blob_store.put(
            _KEY, b"%PDF-1.7", "application/pdf", metadata={"originalName": "report.pdf"}
        )

        blob = await blob_store.get(_KEY)

        assert blob.data == b"%PDF-1.7"
        assert blob.content_type == "application/pdf"
        assert blob.original_name == "report.pdf"

    @pytest.mark.asyncio
    async def test_sidecar_written_next_to_file(
        self, blob_store: LocalBlobStoreProvider, tmp_path: Path
    ) -> None:
        await blob_store.put(_KEY, b"data", "application/pdf")

        stored = tmp_path / "blobs" / "alice" / "1700000000000_report.pdf"
        assert stored.read_bytes() == b"data"
        assert Path(f"{stored}.meta.json").is_file()

    @pytest.mark.asyncio
    async def test_file_url_by_default(self, blob_store: LocalBlobStoreProvider) -> None:
        result = await blob_store.put(_KEY, b"data", "application/pdf")
        assert result.key == _KEY
        assert result.url.startswith("file://")
        assert result.url.endswith("/alice/1700000000000_report.pdf")

    @pytest.mark.asyncio
    async def test_public_base_url(self, tmp_path: Path) -> None:
        store = LocalBlobStoreProvider(tmp_path, public_base_url="https://files.example.com/")
        result = await store.put("alice/1_my report.pdf", b"data", "application/pdf")
        assert result.url == "https://files.example.com/alice/1_my%20report.pdf"

    @pytest.mark.asyncio
    async def test_put_replaces_existing(self, blob_store: LocalBlobStoreProvider) -> None:
        await blob_store.put(_KEY, b"old", "application/pdf")
        await blob_store.put(_KEY, b"new", "application/pdf")
        assert (await blob_store.get(_KEY)).data == b"new"

    @pytest.mark.asyncio
    async def test_get_missing_raises_not_found(self, blob_store: LocalBlobStoreProvider) -> None:
        with pytest.raises(NotFoundError):
            await blob_store.get("alice/missing.pdf")


class TestKeys:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["", "/etc/passwd", "../outside.pdf", "a/../../x", "a\\b"])
    async def test_invalid_keys_rejected(
        self, blob_store: LocalBlobStoreProvider, key: str
    ) -> None:
        with pytest.raises(BlobStoreError):
            await blob_store.put(key, b"data", "application/pdf")


class TestDeleteExistsList:
    @pytest.mark.asyncio
    async def test_delete_reports_whether_object_existed(
        self, blob_store: LocalBlobStoreProvider
    ) -> None:
        await blob_store.put(_KEY, b"data", "application/pdf")

        assert await blob_store.exists(_KEY) is True
        assert await blob_store.delete(_KEY) is True
        assert await blob_store.exists(_KEY) is False
        assert await blob_store.delete(_KEY) is False

    @pytest.mark.asyncio
    async def test_list_empty_store(self, blob_store: LocalBlobStoreProvider) -> None:
        assert await blob_store.list() == []

    @pytest.mark.asyncio
    async def test_list_newest_first_with_original_names(
        self, blob_store: LocalBlobStoreProvider, tmp_path: Path
    ) -> None:
        await blob_store.put("alice/1_a.pdf", b"a", "application/pdf", {"originalName": "a.pdf"})
        await blob_store.put("alice/2_b.png", b"bb", "image/png", {"originalName": "b.png"})
        await blob_store.put("bob/3_c.pdf", b"ccc", "application/pdf")
        root = tmp_path / "blobs"
        os.utime(root / "alice" / "1_a.pdf", (1_000_000, 1_000_000))
        os.utime(root / "alice" / "2_b.png", (2_000_000, 2_000_000))

        files = await blob_store.list("alice/")

        assert [f.key for f in files] == ["alice/2_b.png", "alice/1_a.pdf"]
        assert [f.name for f in files] == ["b.png", "a.pdf"]
        assert files[0].size == 2
        assert files[0].content_type == "image/png"

    @pytest.mark.asyncio
    async def test_list_without_original_name_uses_file_name(
        self, blob_store: LocalBlobStoreProvider
    ) -> None:
        await blob_store.put("bob/3_c.pdf", b"ccc", "application/pdf")
        files = await blob_store.list()
        assert [f.name for f in files] == ["3_c.pdf"]
