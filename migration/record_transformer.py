from migration.schemas import DestinationRecord, SourceRecord


def to_source_record(item):
    """Validate one legacy table item as a SourceRecord."""
    return SourceRecord.model_validate(item)


def to_destination_records(record):
    """One destination record per CAR position of the block."""
    return [
        DestinationRecord(
            key=record.key,
            locator=position.locator,
            offset=position.offset,
            length=position.length,
        )
        for position in record.positions
    ]
