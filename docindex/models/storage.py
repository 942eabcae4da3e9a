"""Value objects exchanged with the blob store."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class BlobPutResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    url: str


class BlobObject(BaseModel):
    """Bytes plus the properties stored alongside them."""

    model_config = ConfigDict(frozen=True)

    key: str
    data: bytes
    content_type: str = "application/octet-stream"
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def original_name(self) -> str:
        return self.metadata.get("originalName", self.key.rsplit("/", 1)[-1])


class BlobFile(BaseModel):
    """Listing entry; ``name`` is the original upload name, ``key`` the storage key."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    url: str
    size: int = 0
    content_type: str = "application/octet-stream"
    last_modified: datetime
