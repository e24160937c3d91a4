# medifyme/routers/patients.py
#
# This router handles patient login and registration, the health-history
# reads, the visit/prescription/test submission forms, and doctor requests.

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..connections import ConnectionWorkflow
from ..crud import db_create_patient, db_get_patient_by_email, db_get_patient_populated, db_get_visit
from ..database import Store, get_store
from ..dependencies import get_connection_workflow, get_identity_resolver, get_submission_pipeline
from ..errors import MedifyError, NotFoundError, ValidationError
from ..identity import IdentityResolver
from ..models import (
    LabTestRecord,
    LoginRequest,
    PrescriptionRecord,
    RegisterRequest,
    RegisterResponse,
    RequestDoctorBody,
    RequestDoctorResponse,
    VisitRecord,
)
from ..submissions import SubmissionPipeline, UploadedFile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patients", tags=["Patients"])


async def _read_files(files: Optional[List[UploadFile]]) -> List[UploadedFile]:
    uploaded = []
    for upload in files or []:
        uploaded.append((upload.filename or "upload", await upload.read()))
    return uploaded


def _populated_patient(store: Store, id: Optional[str], *attributes: str):
    if not id:
        raise ValidationError("No patient id provided")
    try:
        patient = db_get_patient_populated(store, id, *attributes)
    except Exception:
        logger.exception("Error fetching patient %s", id)
        raise MedifyError("Something Went Wrong!")
    if not patient:
        raise NotFoundError("No Patient Found")
    return jsonable_encoder(patient)


@router.post("/login", responses={212: {"description": "New patient, requires registration"}})
async def patient_login(body: LoginRequest, resolver: IdentityResolver = Depends(get_identity_resolver)):
    """
    Logs a patient in with a Google access token. Unknown patients are not
    created here: the 212 answer carries the Google profile for registration.
    """
    outcome = await resolver.resolve(body.googleAccessToken, "patient", claimed_role=body.role)
    return JSONResponse(
        status_code=outcome.status,
        content=jsonable_encoder(outcome.payload),
        headers={"Access-Control-Allow-Origin": "*"},
    )


@router.post("/register", response_model=RegisterResponse)
def register(body: RegisterRequest, store: Store = Depends(get_store)):
    data = body.data
    if data.is_empty():
        raise MedifyError("Something Went Wrong")
    try:
        if data.email and db_get_patient_by_email(store, data.email):
            raise MedifyError("Already Registered")
        patient = db_create_patient(store, data.model_dump(exclude={"role"}))
    except MedifyError:
        raise
    except Exception:
        logger.exception("Error registering patient")
        raise MedifyError("Something Went Wrong")
    return RegisterResponse(message="Registered Successfully", patient=patient)


@router.get("/healthHistory")
def health_history(id: str = Query(None), store: Store = Depends(get_store)):
    """Returns the patient with `visits` and `doctors` populated."""
    return _populated_patient(store, id, "visits", "doctors")


@router.post("/healthHistoryForm", response_model=VisitRecord)
async def health_history_form(
    id: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    doctorComments: Optional[str] = Form(None),
    patientComments: Optional[str] = Form(None),
    doctorName: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    pipeline: SubmissionPipeline = Depends(get_submission_pipeline),
):
    """Records a visit. Files are uploaded without OCR."""
    try:
        return await pipeline.submit_visit(
            id, await _read_files(files), date=date, doctor_comments=doctorComments,
            patient_comments=patientComments, doctor_name=doctorName,
        )
    except MedifyError as e:
        logger.warning("Visit submission for patient %s failed: %s", id, e.message)
        raise
    except Exception:
        logger.exception("Error in healthHistoryForm")
        raise MedifyError("Something Went Wrong!")


@router.get("/prescription")
def prescription(id: str = Query(None), store: Store = Depends(get_store)):
    """Returns the patient with `prescriptions` populated."""
    return _populated_patient(store, id, "prescriptions")


@router.post("/prescription-form", response_model=PrescriptionRecord)
async def prescription_form(
    id: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    medications: Optional[str] = Form(None),
    prescriptionComments: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    pipeline: SubmissionPipeline = Depends(get_submission_pipeline),
):
    """Records a prescription. Image files are OCR'd and summarized."""
    try:
        return await pipeline.submit_prescription(
            id, await _read_files(files), date=date, medications=medications,
            prescription_comments=prescriptionComments,
        )
    except MedifyError as e:
        logger.warning("Prescription submission for patient %s failed: %s", id, e.message)
        raise
    except Exception:
        logger.exception("Error in prescriptionForm")
        raise MedifyError("Something Went Wrong!")


@router.get("/test")
def lab_tests(id: str = Query(None), store: Store = Depends(get_store)):
    """Returns the patient with `tests` populated."""
    return _populated_patient(store, id, "tests")


@router.post("/test-form", response_model=LabTestRecord)
async def test_form(
    id: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    testName: Optional[str] = Form(None),
    testComments: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    pipeline: SubmissionPipeline = Depends(get_submission_pipeline),
):
    """Records a test result. Image files are OCR'd and summarized."""
    try:
        return await pipeline.submit_test(
            id, await _read_files(files), date=date, test_name=testName, test_comments=testComments,
        )
    except MedifyError as e:
        logger.warning("Test submission for patient %s failed: %s", id, e.message)
        raise
    except Exception:
        logger.exception("Error in testForm")
        raise MedifyError("Something Went Wrong!")


@router.get("/visits", response_model=VisitRecord)
def visits(id: str = Query(None), store: Store = Depends(get_store)):
    """Returns a single visit by its id."""
    if not id:
        raise ValidationError("No visit id provided")
    try:
        visit = db_get_visit(store, id)
    except Exception:
        logger.exception("Error fetching visit %s", id)
        raise MedifyError("Something Went Wrong!")
    if not visit:
        raise NotFoundError("No Visit Found")
    return visit


@router.post("/request-doctor", response_model=RequestDoctorResponse,
             responses={212: {"description": "Doctor not found, already requested, or already a patient"}})
def request_doctor(body: RequestDoctorBody, workflow: ConnectionWorkflow = Depends(get_connection_workflow)):
    try:
        request = workflow.request_doctor(body.id, body.doctorEmail)
    except MedifyError:
        raise
    except Exception:
        logger.exception("Error requesting doctor")
        raise MedifyError("Something Went Wrong!")
    return RequestDoctorResponse(request=request)
