# backend/tests/conftest.py
#
# Shared fixtures. The document store is replaced with an in-memory stand-in
# for DynamoDB tables that understands the calls `crud.py` makes: get/put/
# delete/query, `SET` updates with `list_append`, and boto3 condition objects.

import copy
import re
import threading
from typing import Any, Dict, Optional

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from backend.medifyme import database
from backend.medifyme.crud import db_create_doctor, db_create_patient
from backend.medifyme.database import Store, get_store
from backend.medifyme.enrichment import get_gateway
from backend.medifyme.errors import UploadFailedError
from backend.medifyme.main import app
from backend.medifyme.models import FileResult

KEY_NAMES = {
    database.PATIENTS_TABLE_NAME: "patientId",
    database.DOCTORS_TABLE_NAME: "doctorId",
    database.REQUESTS_TABLE_NAME: "requestId",
    database.VISITS_TABLE_NAME: "visitId",
    database.PRESCRIPTIONS_TABLE_NAME: "prescriptionId",
    database.TESTS_TABLE_NAME: "testId",
}

SET_CLAUSE = re.compile(r"(#\w+) = (?:list_append\(if_not_exists\(#\w+, (:\w+)\), (:\w+)\)|(:\w+))")


def _conditional_failure(operation: str) -> ClientError:
    return ClientError(
        {"Error": {"Code": "ConditionalCheckFailedException", "Message": "The conditional request failed"}},
        operation,
    )


def _matches(condition, item: Optional[Dict[str, Any]]) -> bool:
    expression = condition.get_expression()
    operator = expression["operator"]
    values = expression["values"]
    if operator == "AND":
        return all(_matches(value, item) for value in values)
    if operator == "OR":
        return any(_matches(value, item) for value in values)
    if operator == "attribute_exists":
        return item is not None and values[0].name in item
    if operator == "attribute_not_exists":
        return item is None or values[0].name not in item
    if operator == "=":
        return item is not None and item.get(values[0].name) == values[1]
    raise NotImplementedError(operator)


class FakeTable:
    """Minimal stand-in for a DynamoDB Table resource."""

    def __init__(self, name: str, key_name: str):
        self.name = name
        self.key_name = key_name
        self.items: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get_item(self, Key):
        item = self.items.get(Key[self.key_name])
        return {"Item": copy.deepcopy(item)} if item else {}

    def put_item(self, Item, ConditionExpression=None):
        with self._lock:
            current = self.items.get(Item[self.key_name])
            if ConditionExpression is not None and not _matches(ConditionExpression, current):
                raise _conditional_failure("PutItem")
            self.items[Item[self.key_name]] = copy.deepcopy(Item)
        return {}

    def query(self, IndexName, KeyConditionExpression):
        key, value = KeyConditionExpression.get_expression()["values"]
        matches = [copy.deepcopy(item) for item in self.items.values() if item.get(key.name) == value]
        return {"Items": matches}

    def delete_item(self, Key, ConditionExpression=None, ReturnValues=None):
        with self._lock:
            current = self.items.get(Key[self.key_name])
            if ConditionExpression is not None and not _matches(ConditionExpression, current):
                raise _conditional_failure("DeleteItem")
            self.items.pop(Key[self.key_name], None)
        if ReturnValues == "ALL_OLD" and current:
            return {"Attributes": copy.deepcopy(current)}
        return {}

    def update_item(self, Key, UpdateExpression, ExpressionAttributeNames, ExpressionAttributeValues,
                    ConditionExpression=None, ReturnValues=None):
        with self._lock:
            current = self.items.get(Key[self.key_name])
            if ConditionExpression is not None and not _matches(ConditionExpression, current):
                raise _conditional_failure("UpdateItem")
            item = copy.deepcopy(current) if current else dict(Key)
            for match in SET_CLAUSE.finditer(UpdateExpression):
                attribute = ExpressionAttributeNames[match.group(1)]
                if match.group(4):
                    item[attribute] = copy.deepcopy(ExpressionAttributeValues[match.group(4)])
                else:
                    existing = item.get(attribute, ExpressionAttributeValues[match.group(2)])
                    item[attribute] = list(existing) + list(ExpressionAttributeValues[match.group(3)])
            self.items[Key[self.key_name]] = item
        if ReturnValues == "ALL_NEW":
            return {"Attributes": copy.deepcopy(item)}
        return {}


class FakeDynamoResource:
    def __init__(self):
        self.tables: Dict[str, FakeTable] = {}

    def Table(self, name):
        if name not in self.tables:
            self.tables[name] = FakeTable(name, KEY_NAMES[name])
        return self.tables[name]


class FakeGateway:
    """Stands in for the enrichment gateway; records each call in order."""

    def __init__(self, fail_on: Optional[str] = None):
        self.calls = []
        self.fail_on = fail_on

    async def enrich(self, data: bytes, filename: str, wants_ocr: bool) -> FileResult:
        self.calls.append((filename, data, wants_ocr))
        if filename == self.fail_on:
            raise UploadFailedError("Upload failed")
        ocr = f"<p>summary of {filename}</p>" if wants_ocr and not filename.endswith(".pdf") else None
        return FileResult(url=f"https://media.example.com/MedifyMe/{filename}", ocr=ocr)


@pytest.fixture
def store():
    return Store(resource=FakeDynamoResource())


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(store, gateway):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def patient(store):
    return db_create_patient(store, {"name": "Asha Rao", "email": "asha@example.com", "age": 34})


@pytest.fixture
def doctor(store):
    return db_create_doctor(store, "Dr. Mehta", "mehta@example.com", "https://photo.example.com/m.png", "tok-d")
