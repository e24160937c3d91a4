# backend/tests/test_crud.py
#
# Unit tests for the store access functions in `medifyme/crud.py`. The
# DynamoDB tables are MagicMocks here, so the assertions are about the
# calls made against them.

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from backend.medifyme.crud import (
    db_append_reference,
    db_create_patient,
    db_delete_pending_request,
    db_get_item,
    db_get_many,
    db_get_patient_by_email,
    db_set_lists,
)


def _mock_store():
    store = MagicMock()
    for table in ("patients", "doctors", "requests", "visits", "prescriptions", "tests"):
        getattr(store, table).name = table.capitalize()
    return store


def test_db_get_item_found():
    table = MagicMock()
    table.get_item.return_value = {"Item": {"patientId": "p-1", "name": "Asha"}}

    result = db_get_item(table, "patientId", "p-1")

    table.get_item.assert_called_once_with(Key={"patientId": "p-1"})
    assert result == {"patientId": "p-1", "name": "Asha"}


def test_db_get_item_not_found():
    table = MagicMock()
    table.get_item.return_value = {}

    assert db_get_item(table, "patientId", "missing") is None


def test_db_get_patient_by_email_queries_email_index():
    store = _mock_store()
    store.patients.query.return_value = {"Items": [{"patientId": "p-1", "email": "a@example.com"}]}

    result = db_get_patient_by_email(store, "a@example.com")

    assert result["patientId"] == "p-1"
    kwargs = store.patients.query.call_args.kwargs
    assert kwargs["IndexName"] == "Index-email"


def test_db_create_patient_converts_floats_and_starts_empty_lists():
    store = _mock_store()

    patient = db_create_patient(store, {"name": "Asha", "height": 160.5, "gender": None})

    item = store.patients.put_item.call_args.kwargs["Item"]
    assert item["height"] == Decimal("160.5")
    assert "gender" not in item
    assert item["doctors"] == [] and item["requests"] == []
    assert patient["patientId"] == item["patientId"]


def test_db_append_reference_uses_list_append():
    table = MagicMock()
    table.update_item.return_value = {"Attributes": {"patientId": "p-1", "visits": ["v-1"]}}

    db_append_reference(table, "patientId", "p-1", "visits", "v-1")

    kwargs = table.update_item.call_args.kwargs
    assert kwargs["Key"] == {"patientId": "p-1"}
    assert "list_append" in kwargs["UpdateExpression"]
    assert kwargs["ExpressionAttributeNames"]["#a"] == "visits"
    assert kwargs["ExpressionAttributeValues"][":v"] == ["v-1"]


def test_db_set_lists_sets_each_attribute():
    table = MagicMock()

    db_set_lists(table, "doctorId", "d-1", {"requests": [], "patients": ["p-1"]})

    kwargs = table.update_item.call_args.kwargs
    assert kwargs["UpdateExpression"] == "SET #a0 = :v0, #a1 = :v1, #ua = :ua"
    assert kwargs["ExpressionAttributeNames"]["#a1"] == "patients"
    assert kwargs["ExpressionAttributeValues"][":v1"] == ["p-1"]


def test_db_delete_pending_request_lost_race_returns_none():
    store = _mock_store()
    store.requests.delete_item.side_effect = ClientError(
        {"Error": {"Code": "ConditionalCheckFailedException", "Message": "failed"}}, "DeleteItem"
    )

    assert db_delete_pending_request(store, "r-1") is None


def test_db_delete_pending_request_other_errors_propagate():
    store = _mock_store()
    store.requests.delete_item.side_effect = ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}}, "DeleteItem"
    )

    with pytest.raises(ClientError):
        db_delete_pending_request(store, "r-1")


def test_db_get_many_keeps_order_and_skips_dangling_ids():
    table = MagicMock()
    records = {"v-1": {"visitId": "v-1"}, "v-3": {"visitId": "v-3"}}
    table.get_item.side_effect = lambda Key: {"Item": records[Key["visitId"]]} if Key["visitId"] in records else {}

    result = db_get_many(table, "visitId", ["v-3", "v-2", "v-1"])

    assert [r["visitId"] for r in result] == ["v-3", "v-1"]
