# medifyme/crud.py
#
# This module contains all the functions for Create, Read, Update, and Delete
# (CRUD) operations, interacting directly with the document store.
# Every function takes the Store (or one of its tables) as its first argument.

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from .database import EMAIL_INDEX_NAME, Store

logger = logging.getLogger(__name__)

PATIENT_LISTS = ("doctors", "visits", "prescriptions", "tests", "requests")
DOCTOR_LISTS = ("patients", "requests")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_dynamo(value: Any) -> Any:
    """DynamoDB rejects floats; numbers go in as Decimal."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_dynamo(v) for v in value]
    return value


def _is_conditional_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


# --- Generic helpers ---

def db_get_item(table, key_name: str, item_id: str) -> Optional[Dict[str, Any]]:
    """Finds a record by its primary key."""
    logger.info("DB Read: Searching %s for %s=%s", table.name, key_name, item_id)
    response = table.get_item(Key={key_name: item_id})
    item = response.get("Item")
    if item:
        return item
    logger.info("DB Read: No %s record for %s=%s", table.name, key_name, item_id)
    return None


def db_find_by_email(table, email: str) -> Optional[Dict[str, Any]]:
    """Finds a record by email using the email GSI. Exact match."""
    logger.info("DB Read: Searching %s for email in GSI '%s'", table.name, EMAIL_INDEX_NAME)
    response = table.query(
        IndexName=EMAIL_INDEX_NAME,
        KeyConditionExpression=Key("email").eq(email),
    )
    items = response.get("Items", [])
    if items:
        return items[0]
    return None


def db_put_record(table, key_name: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Creates a record with a fresh id and timestamps and returns it."""
    timestamp = _now()
    item = {key_name: str(uuid.uuid4()), **fields, "createdAt": timestamp, "updatedAt": timestamp}
    table.put_item(
        Item=_to_dynamo(item),
        ConditionExpression=Attr(key_name).not_exists(),
    )
    logger.info("DB Write: Created %s record %s", table.name, item[key_name])
    return item


def db_append_reference(table, key_name: str, item_id: str, attribute: str, value: str) -> Dict[str, Any]:
    """
    Appends `value` to the list `attribute` in a single update, so concurrent
    appends to the same record do not overwrite each other.
    """
    response = table.update_item(
        Key={key_name: item_id},
        UpdateExpression="SET #a = list_append(if_not_exists(#a, :empty), :v), #ua = :ua",
        ConditionExpression=Attr(key_name).exists(),
        ExpressionAttributeNames={"#a": attribute, "#ua": "updatedAt"},
        ExpressionAttributeValues={":v": [value], ":empty": [], ":ua": _now()},
        ReturnValues="ALL_NEW",
    )
    logger.info("DB Write: Appended %s to %s.%s of %s", value, table.name, attribute, item_id)
    return response.get("Attributes", {})


def db_set_lists(table, key_name: str, item_id: str, lists: Dict[str, List[str]]) -> Dict[str, Any]:
    """Overwrites the given list attributes of an existing record."""
    names = {"#ua": "updatedAt"}
    values: Dict[str, Any] = {":ua": _now()}
    clauses = []
    for index, (attribute, items) in enumerate(lists.items()):
        names[f"#a{index}"] = attribute
        values[f":v{index}"] = list(items)
        clauses.append(f"#a{index} = :v{index}")
    clauses.append("#ua = :ua")

    response = table.update_item(
        Key={key_name: item_id},
        UpdateExpression="SET " + ", ".join(clauses),
        ConditionExpression=Attr(key_name).exists(),
        ExpressionAttributeNames=names,
        ExpressionAttributeValues=values,
        ReturnValues="ALL_NEW",
    )
    logger.info("DB Write: Updated %s on %s %s", ", ".join(lists), table.name, item_id)
    return response.get("Attributes", {})


def db_get_many(table, key_name: str, ids: Iterable[str]) -> List[Dict[str, Any]]:
    """Loads records in the order given, skipping ids with no record behind them."""
    records = []
    for item_id in ids:
        item = db_get_item(table, key_name, item_id)
        if item:
            records.append(item)
    return records


# --- Patients ---

def db_get_patient(store: Store, patient_id: str) -> Optional[Dict[str, Any]]:
    return db_get_item(store.patients, "patientId", patient_id)


def db_get_patient_by_email(store: Store, email: str) -> Optional[Dict[str, Any]]:
    return db_find_by_email(store.patients, email)


def db_create_patient(store: Store, profile: Dict[str, Any]) -> Dict[str, Any]:
    fields = {k: v for k, v in profile.items() if v is not None}
    # Empty strings are not valid GSI keys.
    if not fields.get("email"):
        fields.pop("email", None)
    for attribute in PATIENT_LISTS:
        fields[attribute] = []
    return db_put_record(store.patients, "patientId", fields)


def db_get_patient_populated(store: Store, patient_id: str, *attributes: str) -> Optional[Dict[str, Any]]:
    """
    Fetches a patient and replaces the named reference lists with the
    records they point at.
    """
    patient = db_get_patient(store, patient_id)
    if not patient:
        return None
    sources = {
        "doctors": (store.doctors, "doctorId"),
        "visits": (store.visits, "visitId"),
        "prescriptions": (store.prescriptions, "prescriptionId"),
        "tests": (store.tests, "testId"),
        "requests": (store.requests, "requestId"),
    }
    for attribute in attributes:
        table, key_name = sources[attribute]
        patient[attribute] = db_get_many(table, key_name, patient.get(attribute, []))
    return patient


# --- Doctors ---

def db_get_doctor(store: Store, doctor_id: str) -> Optional[Dict[str, Any]]:
    return db_get_item(store.doctors, "doctorId", doctor_id)


def db_get_doctor_by_email(store: Store, email: str) -> Optional[Dict[str, Any]]:
    return db_find_by_email(store.doctors, email)


def db_create_doctor(store: Store, name: Optional[str], email: str, photo: Optional[str], token: str) -> Dict[str, Any]:
    fields = {"name": name, "email": email, "photo": photo, "token": token}
    fields = {k: v for k, v in fields.items() if v is not None}
    for attribute in DOCTOR_LISTS:
        fields[attribute] = []
    return db_put_record(store.doctors, "doctorId", fields)


def db_get_doctor_populated(store: Store, doctor_id: str) -> Optional[Dict[str, Any]]:
    doctor = db_get_doctor(store, doctor_id)
    if not doctor:
        return None
    doctor["patients"] = db_get_many(store.patients, "patientId", doctor.get("patients", []))
    doctor["requests"] = db_get_many(store.requests, "requestId", doctor.get("requests", []))
    return doctor


# --- Requests ---

def db_get_request(store: Store, request_id: str) -> Optional[Dict[str, Any]]:
    return db_get_item(store.requests, "requestId", request_id)


def db_create_request(store: Store, patient_id: str, doctor_id: str, patient_name: Optional[str]) -> Dict[str, Any]:
    fields = {
        "patient": patient_id,
        "doctor": doctor_id,
        "patientName": patient_name,
        "isAccepted": False,
    }
    return db_put_record(store.requests, "requestId", fields)


def db_delete_pending_request(store: Store, request_id: str) -> Optional[Dict[str, Any]]:
    """
    Deletes a request only if it still exists and is not accepted. Returns the
    deleted item, or None when another caller got there first.
    """
    try:
        response = store.requests.delete_item(
            Key={"requestId": request_id},
            ConditionExpression=Attr("requestId").exists() & Attr("isAccepted").eq(False),
            ReturnValues="ALL_OLD",
        )
    except ClientError as e:
        if _is_conditional_failure(e):
            logger.info("DB Write: Request %s already gone or accepted", request_id)
            return None
        raise
    logger.info("DB Write: Deleted request %s", request_id)
    return response.get("Attributes")


# --- Visits, prescriptions, tests ---

def db_get_visit(store: Store, visit_id: str) -> Optional[Dict[str, Any]]:
    return db_get_item(store.visits, "visitId", visit_id)


def db_create_visit(store: Store, fields: Dict[str, Any]) -> Dict[str, Any]:
    return db_put_record(store.visits, "visitId", fields)


def db_create_prescription(store: Store, fields: Dict[str, Any]) -> Dict[str, Any]:
    return db_put_record(store.prescriptions, "prescriptionId", fields)


def db_create_test(store: Store, fields: Dict[str, Any]) -> Dict[str, Any]:
    return db_put_record(store.tests, "testId", fields)
