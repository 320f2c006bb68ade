from __future__ import annotations

import pytest

from dynaconn_py import (
    DefinitionError,
    DuplicateIndexError,
    DuplicateKeyError,
    IndexDescriptor,
    InvalidPrimaryKeyNameError,
    InvalidUUIDKeyError,
    MissingPrimaryKeyError,
    ModelRegistry,
    Projection,
    ValidationError,
    define_model,
)


def _order_properties() -> dict[str, object]:
    return {
        "customerId": {"type": "string", "keyType": "hash"},
        "orderId": {"type": "number", "keyType": "range"},
        "id": {"type": "string", "keyType": "pk"},
        "createdAt": {"type": "date", "index": {"local": {"project": ["total"]}}},
        "status": {
            "type": "string",
            "index": {
                "global": {"rangeKey": "createdAt", "project": True, "throughput": {"read": 2, "write": 3}}
            },
        },
        "total": "number",
    }


def test_define_model_resolves_hash_range_and_composite_key() -> None:
    schema = define_model("Order", _order_properties())

    assert schema.table_name == "Order"
    assert schema.hash_key == "customerId"
    assert schema.range_key == "orderId"
    assert schema.composite_key == "id"
    assert schema.composite_separator == "--x--"
    assert schema.hash_key_uuid is False
    assert schema.attribute_types["total"] == "number"
    assert schema.attribute_types["createdAt"] == "date"
    assert schema.default_order_field == "id"


def test_define_model_builds_local_and_global_indexes() -> None:
    schema = define_model("Order", _order_properties())

    assert schema.local_indexes["createdAt"] == IndexDescriptor(
        index_name="createdAtLocalIndex",
        type="LSI",
        hash_attr="customerId",
        range_attr="createdAt",
        projection=Projection.include("total"),
    )
    assert schema.global_indexes["status"] == IndexDescriptor(
        index_name="statusGlobalIndex",
        type="GSI",
        hash_attr="status",
        range_attr="createdAt",
        projection=Projection.all(),
        read_capacity_units=2,
        write_capacity_units=3,
    )
    assert schema.index("statusGlobalIndex").hash_attr == "status"
    with pytest.raises(ValidationError, match="unknown index"):
        schema.index("missing")


def test_define_model_synthesizes_uuid_id_hash_key() -> None:
    schema = define_model("Note", {"title": str})

    assert schema.hash_key == "id"
    assert schema.hash_key_uuid is True
    assert schema.range_key is None
    assert schema.attribute_types["id"] == "string"
    assert schema.default_order_field == "id"


def test_existing_id_property_becomes_hash_key() -> None:
    schema = define_model("Tag", {"id": int, "label": "String"})

    assert schema.hash_key == "id"
    assert schema.hash_key_uuid is False
    assert schema.attribute_types["id"] == "number"
    assert schema.attribute_types["label"] == "string"


def test_duplicate_hash_key_raises() -> None:
    with pytest.raises(DuplicateKeyError) as exc:
        define_model("Bad", {"a": {"keyType": "hash"}, "b": {"keyType": "hash"}})

    assert exc.value.existing == "a"
    assert exc.value.duplicate == "b"
    assert exc.value.key_type == "hash"
    assert isinstance(exc.value, ValueError)


def test_duplicate_range_key_raises() -> None:
    with pytest.raises(DuplicateKeyError, match="only one range key"):
        define_model(
            "Bad",
            {
                "h": {"keyType": "hash"},
                "r1": {"keyType": "range"},
                "r2": {"keyType": "range"},
                "id": {"keyType": "pk"},
            },
        )


def test_uuid_hash_key_must_be_named_id() -> None:
    with pytest.raises(InvalidUUIDKeyError, match="only allowed for attribute name 'id'"):
        define_model("Bad", {"customerId": {"keyType": "hash", "uuid": True}})


def test_composite_key_must_be_named_id() -> None:
    with pytest.raises(InvalidPrimaryKeyNameError):
        define_model(
            "Bad",
            {"h": {"keyType": "hash"}, "r": {"keyType": "range"}, "pk": {"keyType": "pk"}},
        )


def test_range_key_requires_composite_key_and_back() -> None:
    with pytest.raises(MissingPrimaryKeyError, match="no composite primary key"):
        define_model("Bad", {"h": {"keyType": "hash"}, "r": {"keyType": "range"}})

    with pytest.raises(MissingPrimaryKeyError, match="without a range key"):
        define_model("Bad", {"h": {"keyType": "hash"}, "id": {"keyType": "pk"}})


def test_custom_separator_is_kept() -> None:
    schema = define_model(
        "Event",
        {
            "h": {"keyType": "hash"},
            "r": {"type": "number", "keyType": "range"},
            "id": {"keyType": "pk", "separator": "#"},
        },
    )
    assert schema.composite_separator == "#"


def test_duplicate_index_names_raise() -> None:
    with pytest.raises(DuplicateIndexError, match="same"):
        define_model(
            "Bad",
            {
                "h": {"keyType": "hash"},
                "a": {"index": {"local": {"name": "same"}}},
                "b": {"index": {"local": {"name": "same"}}},
            },
        )


def test_global_index_range_must_be_a_known_attribute() -> None:
    with pytest.raises(DefinitionError, match="unknown range attribute 'nope'"):
        define_model("Bad", {"h": {"keyType": "hash"}, "g": {"index": {"global": {"rangeKey": "nope"}}}})


def test_unsupported_attribute_type_raises() -> None:
    with pytest.raises(DefinitionError, match="unsupported attribute type"):
        define_model("Bad", {"h": {"keyType": "hash", "type": "blob"}})


def test_model_settings_are_resolved() -> None:
    schema = define_model(
        "Order",
        _order_properties(),
        {
            "ReadCapacityUnits": 1,
            "WriteCapacityUnits": 2,
            "tableStatus": {"waitTillActive": False, "timeInterval": 250},
            "table": "orders_v2",
        },
    )

    assert schema.table_name == "orders_v2"
    assert schema.settings.read_capacity_units == 1
    assert schema.settings.write_capacity_units == 2
    assert schema.settings.table_status.wait_till_active is False
    assert schema.settings.table_status.poll_interval_seconds == 0.25


def test_registry_is_immutable() -> None:
    schema = define_model("Order", _order_properties())
    empty = ModelRegistry()
    registry = empty.register(schema)

    assert "Order" not in empty
    assert "Order" in registry
    assert registry["Order"] is schema
    assert registry.get("Missing") is None
    assert list(registry) == ["Order"]
    assert len(registry) == 1
    with pytest.raises(ValidationError, match="unknown model: Order"):
        empty.schema("Order")
