import logging
from dataclasses import dataclass

from migration.schemas import ScanCursor

log = logging.getLogger(__name__)
log.setLevel(logging.INFO)


@dataclass(frozen=True)
class Found:
    value: str


class Absent:
    """A key with no stored value. Expected for a segment that never ran."""
    def __repr__(self):
        return "ABSENT"


ABSENT = Absent()


class CheckpointStore:
    """Small durable values in SSM Parameter Store, overwrite semantics."""

    def __init__(self, ssm):
        self.ssm = ssm

    def get(self, key):
        try:
            res = self.ssm.get_parameter(Name=key)
        except self.ssm.exceptions.ParameterNotFound:
            return ABSENT
        value = res.get("Parameter", {}).get("Value")
        if value is None:
            return ABSENT
        return Found(value)

    def put(self, key, value):
        self.ssm.put_parameter(
            Name=key,
            Value=value,
            Type="String",
            Overwrite=True,
            Tier="Standard",
        )

    def delete(self, key):
        try:
            self.ssm.delete_parameter(Name=key)
        except self.ssm.exceptions.ParameterNotFound:
            pass

    def exists(self, key):
        return isinstance(self.get(key), Found)


def load_cursor(store, config, total_segments, segment):
    """Stored cursor for the segment, or a fresh one if it never ran."""
    res = store.get(config.cursor_key(total_segments, segment))
    if isinstance(res, Absent):
        return ScanCursor(partition_id=segment, total_partitions=total_segments)
    return ScanCursor.from_value(res.value, total_segments, segment)


def save_cursor(store, config, cursor):
    store.put(config.cursor_key(cursor.total_partitions, cursor.partition_id), cursor.to_value())


def stop_signal_present(store, config):
    return store.exists(config.stop_key)
