from datetime import datetime, timedelta
from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ObjectState(str, Enum):
    # DELIVERED is the transition a download-info request makes; the record
    # it leaves behind is already EXPIRED. PURGED objects have no record left.
    CREATED = "created"
    DELIVERED = "delivered"
    EXPIRED = "expired"
    PURGED = "purged"


def storage_key_for(object_id: str, display_name: str) -> str:
    name = PurePosixPath(display_name.replace("\\", "/")).name.strip()
    if name in ("", ".", ".."):
        name = "file"
    return f"uploads/{object_id}/{name}"


class ObjectRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(min_length=1)
    display_name: str = Field(alias="displayName")
    content_type: str = Field(alias="contentType")
    size_bytes: int = Field(alias="sizeBytes", ge=0)
    created_at: datetime = Field(alias="createdAt")
    download_count: int = Field(default=0, alias="downloadCount", ge=0)
    storage_key: str = Field(alias="storageKey", min_length=1)

    @field_validator("created_at")
    @classmethod
    def _require_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("createdAt must be timezone-aware")
        return value

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str) -> "ObjectRecord":
        return cls.model_validate_json(raw)

    def with_download(self) -> "ObjectRecord":
        return self.model_copy(update={"download_count": self.download_count + 1})

    def age(self, now: datetime) -> timedelta:
        return now - self.created_at

    def state(self, now: datetime, ttl: timedelta) -> ObjectState:
        if self.download_count >= 1 or self.age(now) >= ttl:
            return ObjectState.EXPIRED
        return ObjectState.CREATED


class UploadIntentRequest(BaseModel):
    display_name: str = Field(alias="displayName", min_length=1, max_length=1024)
    content_type: str = Field(alias="contentType", min_length=1, max_length=255)
    size_bytes: int = Field(alias="sizeBytes", gt=0, strict=True)


class UploadIntentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    upload_url: str = Field(alias="uploadURL")
    id: str


class DownloadInfoResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: str = Field(alias="displayName")
    size_bytes: int = Field(alias="sizeBytes")
    download_url: str = Field(alias="downloadURL")


class SweepResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    purged_count: int = Field(alias="purgedCount")
    scanned_count: int = Field(alias="scannedCount")
    failed_count: int = Field(alias="failedCount")
