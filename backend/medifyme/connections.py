# medifyme/connections.py
#
# The patient -> doctor connection workflow.
#
#   NONE --request_doctor--> REQUESTED --accept_request--> CONNECTED
#
# A Request record exists only while REQUESTED. Accepting deletes it and adds
# one edge: the doctor id to Patient.doctors and the patient id to
# Doctor.patients.
#
# The writes in each transition span several records and are not
# transactional. A failure part-way through can leave a request id in one
# party's list only; the populate helpers skip ids with no record behind them.

import logging
from typing import Any, Dict, List, Optional

from .crud import (
    db_append_reference,
    db_create_request,
    db_delete_pending_request,
    db_get_doctor,
    db_get_doctor_by_email,
    db_get_patient,
    db_get_request,
    db_set_lists,
)
from .database import Store
from .errors import ConflictSoft, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _without(items: List[str], value: str) -> List[str]:
    return [item for item in items if item != value]


def _with(items: List[str], value: str) -> List[str]:
    return items if value in items else items + [value]


class ConnectionWorkflow:
    def __init__(self, store: Store):
        self.store = store

    def request_doctor(self, patient_id: Optional[str], doctor_email: Optional[str]) -> Dict[str, Any]:
        """Creates a pending request from a patient to the doctor with `doctor_email`."""
        if not patient_id:
            raise ConflictSoft("No patient id provided")

        patient = db_get_patient(self.store, patient_id)
        if not patient:
            raise NotFoundError("No Patient Found")

        doctor = db_get_doctor_by_email(self.store, doctor_email) if doctor_email else None
        if not doctor:
            raise ConflictSoft("Doctor Not Found")
        doctor_id = doctor["doctorId"]

        for request_id in patient.get("requests", []):
            pending = db_get_request(self.store, request_id)
            if pending and pending.get("doctor") == doctor_id:
                raise ConflictSoft("Already Requested")

        if patient_id in doctor.get("patients", []):
            raise ConflictSoft("Already a Patient")

        request = db_create_request(self.store, patient_id, doctor_id, patient.get("name"))
        db_append_reference(self.store.patients, "patientId", patient_id, "requests", request["requestId"])
        db_append_reference(self.store.doctors, "doctorId", doctor_id, "requests", request["requestId"])
        logger.info("CONNECT: Patient %s requested doctor %s", patient_id, doctor_id)
        return request

    def accept_request(self, request_id: Optional[str]) -> str:
        """
        Accepts a pending request. The conditional delete of the Request is the
        point where concurrent accepts are decided: only one caller gets the
        deleted item back.
        """
        if not request_id:
            raise ValidationError("No Patient Id Found")

        request = db_get_request(self.store, request_id)
        if not request:
            raise NotFoundError("No Request Found")
        if request.get("isAccepted"):
            raise ConflictSoft("Already Accepted", status_code=400)

        deleted = db_delete_pending_request(self.store, request_id)
        if not deleted:
            raise NotFoundError("No Request Found")

        doctor_id = deleted["doctor"]
        patient_id = deleted["patient"]

        doctor = db_get_doctor(self.store, doctor_id)
        if doctor:
            db_set_lists(self.store.doctors, "doctorId", doctor_id, {
                "requests": _without(doctor.get("requests", []), request_id),
                "patients": _with(doctor.get("patients", []), patient_id),
            })
        else:
            logger.warning("CONNECT: Request %s pointed at missing doctor %s", request_id, doctor_id)

        patient = db_get_patient(self.store, patient_id)
        if patient:
            db_set_lists(self.store.patients, "patientId", patient_id, {
                "requests": _without(patient.get("requests", []), request_id),
                "doctors": _with(patient.get("doctors", []), doctor_id),
            })
        else:
            logger.warning("CONNECT: Request %s pointed at missing patient %s", request_id, patient_id)

        logger.info("CONNECT: Doctor %s accepted patient %s", doctor_id, patient_id)
        return "Request Accepted"
