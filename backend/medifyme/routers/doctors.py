# medifyme/routers/doctors.py
#
# This router handles doctor login, the doctor's patient list, and accepting
# patient connection requests.

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..connections import ConnectionWorkflow
from ..crud import db_get_doctor_populated
from ..database import Store, get_store
from ..dependencies import get_connection_workflow, get_identity_resolver
from ..errors import MedifyError, NotFoundError, ValidationError
from ..identity import IdentityResolver
from ..models import AcceptRequestBody, LoginRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/doctors", tags=["Doctors"])


@router.post("/login", responses={212: {"description": "Doctor created"}, 400: {"description": "Invalid access token"}})
async def doctor_login(body: LoginRequest, resolver: IdentityResolver = Depends(get_identity_resolver)):
    """
    Logs a doctor in with a Google access token. A doctor seen for the first
    time is created and answered with status 212; a known doctor with 200.
    """
    outcome = await resolver.resolve(body.googleAccessToken, "doctor", claimed_role=body.role)
    return JSONResponse(
        status_code=outcome.status,
        content=jsonable_encoder(outcome.payload),
        headers={"Access-Control-Allow-Origin": "*"},
    )


@router.get("/patients")
def get_patients(id: str = Query(None), store: Store = Depends(get_store)):
    """Returns the doctor with `patients` and `requests` populated."""
    if not id:
        raise ValidationError("No doctor id provided")
    try:
        doctor = db_get_doctor_populated(store, id)
    except MedifyError:
        raise
    except Exception:
        logger.exception("Error fetching patients for doctor %s", id)
        raise MedifyError("Something Went Wrong")
    if not doctor:
        raise NotFoundError("No Doctor Found")
    return jsonable_encoder(doctor)


@router.post("/accept", responses={400: {"description": "No request found or already accepted"}})
def accept_request(body: AcceptRequestBody, workflow: ConnectionWorkflow = Depends(get_connection_workflow)):
    """Accepts a pending request by its id."""
    try:
        return workflow.accept_request(body.id)
    except MedifyError:
        raise
    except Exception:
        logger.exception("Error accepting request %s", body.id)
        raise MedifyError("Something Went Wrong")
