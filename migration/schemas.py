"""
Wire shapes for the migration.

Field names on the wire are fixed by the legacy blocks index table
(`multihash`, `cars`, `car`) and the destination blocks-cars-position table
(`blockmultihash`, `carpath`). Python attribute names describe what the field is.
"""
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from migration import json_utils
from migration.errors import InvalidBatchMessage

BATCH_MESSAGE_VERSION = 1
UNPROCESSED_MESSAGE_VERSION = 1


class CarPosition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    offset: int
    length: int
    locator: str = Field(alias="car")


class SourceRecord(BaseModel):
    """One item of the legacy table. Only `key` and `positions` are migrated."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    key: str = Field(alias="multihash")
    positions: list[CarPosition] = Field(default_factory=list, alias="cars")
    created_at: Any = Field(default=None, alias="createdAt")
    kind: Any = Field(default=None, alias="type")


class DestinationRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    key: str = Field(alias="blockmultihash")
    locator: str = Field(alias="carpath")
    offset: int
    length: int

    @property
    def primary_key(self):
        return (self.key, self.locator)

    def key_item(self):
        return {"blockmultihash": self.key, "carpath": self.locator}

    def to_item(self):
        return self.model_dump(by_alias=True)


def primary_key_of(item):
    """Primary key of a destination table item (a plain dict)."""
    return (item["blockmultihash"], item["carpath"])


class ScanCursor(BaseModel):
    """
    Progress of one scan segment. Persisted as
    {"recordsScanned", "lastKey"?, "stopRequested", "complete"}; the segment
    coordinates are part of the checkpoint key, not the value.
    """
    model_config = ConfigDict(populate_by_name=True)

    partition_id: int = Field(exclude=True)
    total_partitions: int = Field(exclude=True)
    last_key: Optional[dict[str, Any]] = Field(default=None, alias="lastKey")
    records_scanned: int = Field(default=0, alias="recordsScanned")
    stop_requested: bool = Field(default=False, alias="stopRequested")
    complete: bool = False

    def to_value(self):
        return json_utils.dumps(self.model_dump(by_alias=True, exclude_none=True))

    @classmethod
    def from_value(cls, raw, total_partitions, partition_id):
        data = json_utils.loads(raw)
        return cls.model_validate({
            **data,
            "partition_id": partition_id,
            "total_partitions": total_partitions,
        })


class BatchMessage(BaseModel):
    """Body of a batch queue message."""
    version: Literal[1] = BATCH_MESSAGE_VERSION
    records: list[SourceRecord]

    def to_body(self):
        return json_utils.dumps(self.model_dump(by_alias=True, exclude_none=True))

    @classmethod
    def parse(cls, body):
        return _parse(cls, body)


class UnprocessedMessage(BaseModel):
    """Body of an unprocessed-writes queue message: BatchWriteItem requests."""
    version: Literal[1] = UNPROCESSED_MESSAGE_VERSION
    table: str
    requests: list[dict[str, Any]]

    def to_body(self):
        return json_utils.dumps(self.model_dump())

    @classmethod
    def parse(cls, body):
        return _parse(cls, body)


def _parse(model, body):
    try:
        return model.model_validate(json_utils.loads(body))
    except (ValueError, TypeError, ValidationError) as e:
        raise InvalidBatchMessage(f"invalid {model.__name__}: {e}") from e
