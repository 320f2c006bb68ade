from __future__ import annotations

import os
import uuid

import boto3
import pytest

from dynaconn_py import DynamoConnector

pytestmark = pytest.mark.skipif(
    not os.environ.get("DYNAMODB_ENDPOINT"), reason="DYNAMODB_ENDPOINT is not set"
)

ORDER = {
    "customerId": {"type": "string", "keyType": "hash"},
    "orderId": {"type": "number", "keyType": "range"},
    "id": {"type": "string", "keyType": "pk"},
    "placedAt": {"type": "date", "index": {"local": True}},
    "total": "number",
}


def _settings() -> dict[str, str]:
    return {
        "endpoint": os.environ["DYNAMODB_ENDPOINT"],
        "region": os.environ.get("AWS_REGION", "us-east-1"),
        "accessKeyId": os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        "secretAccessKey": os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    }


def test_order_model_round_trip_against_dynamodb_local() -> None:
    table_name = f"dynaconn_py_orders_{uuid.uuid4().hex[:12]}"
    connector = DynamoConnector.from_settings(_settings())
    try:
        settings = {"table": table_name, "tableStatus": {"waitTillActive": True, "timeInterval": 200}}
        connector.define("Order", ORDER, settings)
        assert connector.table_ready("Order", timeout=120) in {"created", "active"}

        for order_id in range(1, 6):
            connector.create(
                "Order",
                {
                    "customerId": "c1",
                    "orderId": order_id,
                    "placedAt": 1_000 * order_id,
                    "total": order_id * 1.5,
                },
            )
        connector.create("Order", {"customerId": "c2", "orderId": 1, "placedAt": 1, "total": 2})

        assert connector.find("Order", "c1--x--3")["total"] == 4.5
        assert connector.exists("Order", "c2--x--1") is True

        recent = connector.all(
            "Order", {"where": {"customerId": "c1", "placedAt": {"gt": 2_500}}, "order": "orderId DESC"}
        )
        assert [o["orderId"] for o in recent] == [5, 4, 3]

        ranged = connector.all("Order", {"where": {"customerId": "c1", "orderId": {"between": [2, 4]}}})
        assert [o["orderId"] for o in ranged] == [2, 3, 4]

        assert connector.count("Order", {"total": {"gte": 3}}) == 4

        updated = connector.update_attributes("Order", "c1--x--2", {"total": 10})
        assert updated["total"] == 10
        assert updated["id"] == "c1--x--2"

        assert connector.destroy("Order", "c2--x--1") is not None
        assert connector.destroy_all("Order") == 5
        assert connector.all("Order") == []
    finally:
        connector.close()
        boto3.client(
            "dynamodb",
            endpoint_url=os.environ["DYNAMODB_ENDPOINT"],
            region_name=os.environ.get("AWS_REGION", "us-east-1"),
            aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
            aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
        ).delete_table(TableName=table_name)
