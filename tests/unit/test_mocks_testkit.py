from __future__ import annotations

import pytest

from dynaconn_py.mocks import ANY, FakeDynamoDBClient
from dynaconn_py.store import BotoDataStore
from dynaconn_py.testkit import no_sleep, sequential_ids


def test_fake_dynamodb_client_records_and_matches_put_item() -> None:
    client = FakeDynamoDBClient()
    client.expect("put_item", {"TableName": "notes", "Item": ANY})

    BotoDataStore(client).put_item("notes", {"id": "a", "value": 1})

    client.assert_no_pending()
    assert client.calls[0][0] == "put_item"
    assert client.calls_to("put_item")[0]["Item"] == {"id": {"S": "a"}, "value": {"N": "1"}}


def test_fake_dynamodb_client_asserts_pending_calls() -> None:
    client = FakeDynamoDBClient()
    client.expect("query")
    with pytest.raises(AssertionError, match="pending expected calls"):
        client.assert_no_pending()


def test_fake_dynamodb_client_rejects_unexpected_calls() -> None:
    client = FakeDynamoDBClient()
    with pytest.raises(AssertionError, match="unexpected call: list_tables"):
        client.list_tables()


def test_fake_dynamodb_client_rejects_wrong_method_order() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan")
    with pytest.raises(AssertionError, match="expected scan, got query"):
        client.query()


@pytest.mark.parametrize(
    ("expected", "req", "match"),
    [
        ({"a": 1}, {"a": 2}, "expected 1"),
        ({"a": 1}, {}, "missing key"),
        ({"a": {"b": 1}}, {"a": "nope"}, "expected dict"),
        ({"a": [1]}, {"a": "nope"}, "expected list"),
        ({"a": [1, 2]}, {"a": [1]}, "expected 2 items"),
    ],
)
def test_fake_dynamodb_client_strict_matching(expected: dict, req: dict, match: str) -> None:
    client = FakeDynamoDBClient()
    client.expect("query", expected)
    with pytest.raises(AssertionError, match=match):
        client.query(**req)


def test_fake_dynamodb_client_can_inject_errors() -> None:
    client = FakeDynamoDBClient()
    err = RuntimeError("boom")
    client.expect("describe_table", error=err)
    with pytest.raises(RuntimeError, match="boom"):
        client.describe_table(TableName="t")


def test_testkit_helpers() -> None:
    next_id = sequential_ids("n")
    assert [next_id(), next_id()] == ["n1", "n2"]
    assert no_sleep(5.0) is None
    with pytest.raises(ValueError, match="prefix must be non-empty"):
        sequential_ids("")
