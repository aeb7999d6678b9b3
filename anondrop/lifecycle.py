"""
Ephemeral object lifecycle.

An object moves CREATED -> DELIVERED -> EXPIRED -> PURGED and never back.
The manager keeps no state of its own: the metadata store holds the record,
the object store holds the blob, and sweeps reconcile the two.

Known edge case: a sweep that runs right after a download URL was issued
purges the blob before the client may have fetched it. Deleting after the
first download-info request is the intended policy, so this is accepted.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from anondrop.errors import (
    DependencyUnavailable,
    IntentValidationError,
    MalformedRecordError,
    RecordNotFound,
)
from anondrop.models import ObjectRecord, ObjectState, storage_key_for
from anondrop.repository import RecordRepository
from anondrop.storage import ObjectStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UploadIntent:
    id: str
    upload_url: str


@dataclass(frozen=True)
class DownloadGrant:
    display_name: str
    size_bytes: int
    download_url: str


@dataclass
class SweepReport:
    scanned: int = 0
    purged: int = 0
    failed: list[str] = field(default_factory=list)


class LifecycleManager:
    def __init__(
        self,
        repository: RecordRepository,
        object_store: ObjectStore,
        *,
        object_ttl: timedelta,
        signed_url_ttl: int,
        clock: Clock | None = None,
    ):
        self.repository = repository
        self.object_store = object_store
        self.object_ttl = object_ttl
        self.signed_url_ttl = signed_url_ttl
        self.clock = clock or utc_now

    def is_expired(self, record: ObjectRecord, now: datetime | None = None) -> bool:
        now = now or self.clock()
        return record.state(now, self.object_ttl) is ObjectState.EXPIRED

    def create_upload_intent(self, display_name: str, content_type: str, size_bytes: int) -> UploadIntent:
        if not isinstance(display_name, str) or not display_name.strip():
            raise IntentValidationError("displayName is required")
        if not isinstance(content_type, str) or not content_type.strip():
            raise IntentValidationError("contentType is required")
        if isinstance(size_bytes, bool) or not isinstance(size_bytes, int) or size_bytes <= 0:
            raise IntentValidationError("sizeBytes must be a positive integer")

        object_id = str(uuid4())
        record = ObjectRecord(
            id=object_id,
            display_name=display_name,
            content_type=content_type,
            size_bytes=size_bytes,
            created_at=self.clock(),
            download_count=0,
            storage_key=storage_key_for(object_id, display_name),
        )
        upload_url = self.object_store.sign_put(record.storage_key, content_type, size_bytes, self.signed_url_ttl)

        # The record must exist before the URL leaves this process, otherwise
        # the uploaded blob could never be found or deleted.
        if not self.repository.save(record):
            raise DependencyUnavailable(f"could not store metadata for {object_id}")

        logger.info("Upload intent %s created for %s (%d bytes)", object_id, record.storage_key, size_bytes)
        return UploadIntent(id=object_id, upload_url=upload_url)

    def resolve_download(self, object_id: str) -> DownloadGrant:
        try:
            record = self.repository.get(object_id)
        except MalformedRecordError as exc:
            logger.warning("Refusing download of %s: %s", object_id, exc.reason)
            raise RecordNotFound(object_id) from exc
        if record is None:
            raise RecordNotFound(object_id)

        # Read-modify-write without a conditional put. Concurrent resolves may
        # lose an increment, but every one of them leaves the count >= 1.
        delivered = record.with_download()
        if not self.repository.save(delivered):
            raise DependencyUnavailable(f"could not record download of {object_id}")

        download_url = self.object_store.sign_get(delivered.storage_key, self.signed_url_ttl)
        logger.info("Object %s %s (download %d)", object_id, ObjectState.DELIVERED.value, delivered.download_count)
        return DownloadGrant(
            display_name=delivered.display_name,
            size_bytes=delivered.size_bytes,
            download_url=download_url,
        )

    def sweep(self) -> SweepReport:
        """
        Purge every expired record.

        Blobs are deleted before their metadata so that a failure never
        leaves a blob without a record pointing at it. A record that fails to
        purge is left for the next sweep; it does not stop this one.
        """
        now = self.clock()
        report = SweepReport()
        object_ids = self.repository.list_ids()
        logger.info("Sweep started over %d record(s)", len(object_ids))

        for object_id in object_ids:
            report.scanned += 1
            try:
                purged = self._sweep_one(object_id, now)
            except DependencyUnavailable as exc:
                logger.warning("Sweep of %s failed: %s", object_id, exc)
                report.failed.append(object_id)
                continue
            if purged is None:
                report.failed.append(object_id)
            elif purged:
                report.purged += 1

        logger.info(
            "Sweep finished: scanned=%d purged=%d failed=%d",
            report.scanned,
            report.purged,
            len(report.failed),
        )
        return report

    def _sweep_one(self, object_id: str, now: datetime) -> bool | None:
        """Returns True when purged, False when left alone, None on failure."""
        try:
            record = self.repository.get(object_id)
        except MalformedRecordError as exc:
            # Without a storage key the blob cannot be located; drop the record.
            logger.warning("Dropping malformed record %s: %s", object_id, exc.reason)
            return True if self.repository.delete(object_id) else None

        if record is None:
            return False

        if not self.is_expired(record, now):
            return False

        if not self.object_store.delete_object(record.storage_key):
            logger.warning("Blob %s of %s could not be deleted", record.storage_key, object_id)
            return None
        if not self.repository.delete(object_id):
            logger.warning("Metadata of %s could not be deleted after its blob", object_id)
            return None

        logger.info(
            "Object %s %s (age=%s, downloads=%d)",
            object_id,
            ObjectState.PURGED.value,
            record.age(now),
            record.download_count,
        )
        return True
