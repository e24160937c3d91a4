# medifyme/models.py
#
# This module contains all Pydantic models used for data validation,
# serialization, and API request/response schemas.

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict


class StrictBody(BaseModel):
    # Unknown fields are rejected before reaching workflow logic
    model_config = ConfigDict(extra="forbid")


# --- Records ---

class FileResult(BaseModel):
    url: str
    ocr: Optional[str] = None


class PatientRecord(BaseModel):
    patientId: str
    name: Optional[str] = None
    email: Optional[str] = None
    photo: Optional[str] = None
    token: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    allergies: Optional[str] = None
    otherConditions: Optional[str] = None
    medications: Optional[str] = None
    overview: Optional[str] = None
    # Lists hold ids, or full records when populated
    doctors: List[Any] = []
    visits: List[Any] = []
    prescriptions: List[Any] = []
    tests: List[Any] = []
    requests: List[Any] = []
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class DoctorRecord(BaseModel):
    doctorId: str
    name: Optional[str] = None
    email: Optional[str] = None
    photo: Optional[str] = None
    token: Optional[str] = None
    patients: List[Any] = []
    requests: List[Any] = []
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class ConnectionRequest(BaseModel):
    requestId: str
    patient: str
    doctor: str
    patientName: Optional[str] = None
    isAccepted: bool = False
    createdAt: Optional[str] = None


class VisitRecord(BaseModel):
    visitId: str
    date: Optional[str] = None
    doctorComments: Optional[str] = None
    patientComments: Optional[str] = None
    doctorName: Optional[str] = None
    patient: str
    fileUrl: List[str] = []
    createdAt: Optional[str] = None


class PrescriptionRecord(BaseModel):
    prescriptionId: str
    date: Optional[str] = None
    medications: Optional[str] = None
    prescriptionComments: Optional[str] = None
    patient: str
    files: List[FileResult] = []
    createdAt: Optional[str] = None


class LabTestRecord(BaseModel):
    testId: str
    date: Optional[str] = None
    testName: Optional[str] = None
    testComments: Optional[str] = None
    patient: str
    files: List[FileResult] = []
    createdAt: Optional[str] = None


# --- Request bodies ---

class LoginRequest(StrictBody):
    googleAccessToken: str
    role: Optional[str] = None


class PatientRegistration(StrictBody):
    name: Optional[str] = None
    email: Optional[str] = None
    photo: Optional[str] = None
    token: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    allergies: Optional[str] = None
    otherConditions: Optional[str] = None
    medications: Optional[str] = None
    overview: Optional[str] = None
    # Echoed back by the login flow; accepted and ignored
    role: Optional[str] = None

    def is_empty(self) -> bool:
        fields = self.model_dump(exclude={"role"})
        return not any(value not in (None, "", 0) for value in fields.values())


class RegisterRequest(StrictBody):
    data: PatientRegistration


class RequestDoctorBody(StrictBody):
    id: Optional[str] = None
    doctorEmail: Optional[str] = None


class AcceptRequestBody(StrictBody):
    id: Optional[str] = None


class ChatMessage(BaseModel):
    # Forwarded to the provider untouched, including fields we do not model.
    model_config = ConfigDict(extra="allow")

    role: str
    content: Any = None


class ChatRequest(StrictBody):
    messages: List[ChatMessage]


# --- Responses ---

class RequestDoctorResponse(BaseModel):
    request: ConnectionRequest
    status: int = 200


class RegisterResponse(BaseModel):
    message: str
    patient: PatientRecord
    status: int = 200


class PaymentIntentResponse(BaseModel):
    clientSecret: str


class MeetTokenResponse(BaseModel):
    token: str
