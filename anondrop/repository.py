from pydantic import ValidationError

from anondrop.errors import MalformedRecordError
from anondrop.metadata import MetadataStore
from anondrop.models import ObjectRecord


class RecordRepository:
    """Stores ObjectRecords as JSON strings keyed by object id."""

    def __init__(self, store: MetadataStore):
        self.store = store

    def get(self, object_id: str) -> ObjectRecord | None:
        raw = self.store.get(object_id)
        if raw is None:
            return None
        try:
            record = ObjectRecord.from_json(raw)
        except ValidationError as exc:
            raise MalformedRecordError(object_id, f"{exc.error_count()} invalid field(s)") from exc
        if record.id != object_id:
            raise MalformedRecordError(object_id, f"stored id is {record.id}")
        return record

    def save(self, record: ObjectRecord) -> bool:
        return self.store.put(record.id, record.to_json())

    def delete(self, object_id: str) -> bool:
        return self.store.delete(object_id)

    def list_ids(self) -> list[str]:
        return self.store.list_keys()
