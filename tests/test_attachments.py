"""Tests for on-disk attachment storage."""

from __future__ import annotations

import pytest

from src.dealdesk.deals.attachments import AttachmentStorage
from src.dealdesk.deals.errors import DealValidationError
from src.dealdesk.deals.schemas import Attachment


@pytest.fixture
def storage(tmp_path):
    return AttachmentStorage(tmp_path / "uploads", url_prefix="/uploads/", max_bytes=16)


@pytest.mark.asyncio
async def test_save_writes_file_and_descriptor(storage):
    attachment = await storage.save("cim.pdf", b"%PDF-1.7", "application/pdf")

    stored = list(storage.root.iterdir())
    assert len(stored) == 1
    assert stored[0].name.endswith("-cim.pdf")
    assert stored[0].read_bytes() == b"%PDF-1.7"
    assert attachment.url == f"/uploads/{stored[0].name}"
    assert attachment.size == 8
    assert attachment.content_type == "application/pdf"


@pytest.mark.asyncio
async def test_same_name_does_not_collide(storage):
    first = await storage.save("memo.docx", b"a")
    second = await storage.save("memo.docx", b"b")
    assert first.url != second.url
    assert len(list(storage.root.iterdir())) == 2


@pytest.mark.asyncio
async def test_directory_components_stripped(storage):
    attachment = await storage.save("../../etc/passwd", b"x")
    assert attachment.filename == "passwd"
    assert [p.name for p in storage.root.iterdir()] == [attachment.url.rsplit("/", 1)[1]]


@pytest.mark.asyncio
async def test_empty_filename_rejected(storage):
    with pytest.raises(DealValidationError, match="No file uploaded"):
        await storage.save("", b"x")


@pytest.mark.asyncio
async def test_size_limit(storage):
    with pytest.raises(DealValidationError, match="upload limit"):
        await storage.save("big.bin", b"x" * 17)
    assert not storage.root.exists()


@pytest.mark.asyncio
async def test_delete(storage):
    attachment = await storage.save("cim.pdf", b"data")

    assert await storage.delete(attachment) is True
    assert list(storage.root.iterdir()) == []
    assert await storage.delete(attachment) is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url",
    ["https://cdn.example.com/cim.pdf", "/uploads/../secrets.txt", "/uploads/nested/cim.pdf"],
)
async def test_delete_ignores_urls_outside_storage(storage, tmp_path, url):
    (tmp_path / "secrets.txt").write_text("keep")

    removed = await storage.delete(Attachment(filename="x", url=url))

    assert removed is False
    assert (tmp_path / "secrets.txt").exists()


def test_upload_descriptor_accepts_type_key():
    attachment = Attachment.model_validate(
        {"filename": "a.pdf", "url": "/uploads/a.pdf", "size": 3, "type": "application/pdf"}
    )
    assert attachment.content_type == "application/pdf"
