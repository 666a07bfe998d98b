from unittest import mock

import pytest

from migration.errors import MalformedExistenceResponse
from migration.existence_filter import ExistenceFilter, dedupe
from migration.schemas import DestinationRecord

TABLE = "blocks-cars-position"


def rec(locator, key="hash", offset=0):
    return DestinationRecord(key=key, locator=locator, offset=offset, length=10)


def test_dedupe_last_wins_first_position():
    out = dedupe([rec("A", offset=1), rec("B"), rec("A", offset=2)])

    assert [(r.locator, r.offset) for r in out] == [("A", 2), ("B", 0)]


def test_missing_against_real_table(dynamodb, dst_table):
    dst_table.put_item(Item=rec("A").to_item())

    out = list(ExistenceFilter(dynamodb, dst_table.name).missing([rec("A"), rec("B"), rec("C")]))

    assert [r.primary_key for r in out] == [("hash", "B"), ("hash", "C")]


def test_missing_never_yields_duplicates(dynamodb, dst_table):
    out = list(ExistenceFilter(dynamodb, dst_table.name).missing([rec("A"), rec("A"), rec("B"), rec("A")]))

    assert [r.primary_key for r in out] == [("hash", "A"), ("hash", "B")]


def test_missing_is_lazy():
    dynamodb = mock.MagicMock()

    gen = ExistenceFilter(dynamodb, TABLE).missing([rec("A")])

    dynamodb.batch_get_item.assert_not_called()
    dynamodb.batch_get_item.return_value = {"Responses": {TABLE: []}}
    assert list(gen) == [rec("A")]
    dynamodb.batch_get_item.assert_called_once()


def test_empty_batch_makes_no_call():
    dynamodb = mock.MagicMock()

    assert list(ExistenceFilter(dynamodb, TABLE).missing([])) == []
    dynamodb.batch_get_item.assert_not_called()


def test_unprocessed_keys_count_as_missing():
    dynamodb = mock.MagicMock()
    dynamodb.batch_get_item.return_value = {
        "Responses": {TABLE: [{"blockmultihash": "hash", "carpath": "A"}]},
        "UnprocessedKeys": {TABLE: {"Keys": [{"blockmultihash": "hash", "carpath": "B"}]}},
    }

    out = list(ExistenceFilter(dynamodb, TABLE).missing([rec("A"), rec("B")]))

    assert out == [rec("B")]


def test_all_keys_unprocessed_counts_as_missing():
    dynamodb = mock.MagicMock()
    dynamodb.batch_get_item.return_value = {
        "Responses": {},
        "UnprocessedKeys": {TABLE: {"Keys": [{"blockmultihash": "hash", "carpath": "A"}]}},
    }

    assert list(ExistenceFilter(dynamodb, TABLE).missing([rec("A")])) == [rec("A")]


@pytest.mark.parametrize("response", [{}, {"Responses": {}}, {"Responses": {"other": []}}])
def test_malformed_response_fails(response):
    dynamodb = mock.MagicMock()
    dynamodb.batch_get_item.return_value = response

    with pytest.raises(MalformedExistenceResponse):
        list(ExistenceFilter(dynamodb, TABLE).missing([rec("A")]))


def test_request_shape():
    dynamodb = mock.MagicMock()
    dynamodb.batch_get_item.return_value = {"Responses": {TABLE: []}}

    list(ExistenceFilter(dynamodb, TABLE).missing([rec("A"), rec("A")]))

    dynamodb.batch_get_item.assert_called_once_with(RequestItems={
        TABLE: {
            "Keys": [{"blockmultihash": "hash", "carpath": "A"}],
            "ProjectionExpression": "blockmultihash, carpath",
        }
    })


def test_too_many_keys():
    with pytest.raises(ValueError):
        list(ExistenceFilter(mock.MagicMock(), TABLE).missing([rec(str(i)) for i in range(101)]))
