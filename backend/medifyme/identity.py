# medifyme/identity.py
#
# Maps an OAuth access token to a local Patient or Doctor record.

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from starlette.concurrency import run_in_threadpool

from .crud import db_create_doctor, db_get_doctor_by_email, db_get_patient_by_email
from .database import Store
from .errors import ValidationError
from .security import fetch_google_userinfo

logger = logging.getLogger(__name__)

ROLES = ("patient", "doctor")

FOUND = 200
CREATED = 212
NEEDS_REGISTRATION = 212


@dataclass
class LoginOutcome:
    status: int
    payload: Dict[str, Any]


class IdentityResolver:
    def __init__(self, store: Store, fetch_userinfo: Callable[[str], Awaitable[Dict[str, Any]]] = fetch_google_userinfo):
        self.store = store
        self.fetch_userinfo = fetch_userinfo

    async def resolve(self, access_token: str, role: str, claimed_role: Optional[str] = None) -> LoginOutcome:
        """
        Doctors are created on first sight. Patients are not: a first-time
        patient gets the provider profile back and registers separately.
        """
        if role not in ROLES:
            raise ValidationError("Unknown role")

        profile = await self.fetch_userinfo(access_token)
        email = profile["email"]

        if role == "doctor":
            found = await run_in_threadpool(db_get_doctor_by_email, self.store, email)
            if found:
                logger.info("LOGIN: Existing doctor %s", found.get("doctorId"))
                return LoginOutcome(FOUND, {"foundDoctor": found, "status": FOUND})
            doctor = await run_in_threadpool(
                db_create_doctor, self.store, profile["name"], email, profile["photo"], access_token
            )
            logger.info("LOGIN: Created doctor %s", doctor["doctorId"])
            return LoginOutcome(CREATED, {"status": CREATED, "doctor": doctor})

        found = await run_in_threadpool(db_get_patient_by_email, self.store, email)
        if found:
            logger.info("LOGIN: Existing patient %s", found.get("patientId"))
            return LoginOutcome(FOUND, {"foundPatient": found, "status": FOUND})

        logger.info("LOGIN: Patient not registered yet")
        return LoginOutcome(
            NEEDS_REGISTRATION,
            {
                "status": NEEDS_REGISTRATION,
                "name": profile["name"],
                "email": email,
                "photo": profile["photo"],
                "token": access_token,
                "role": claimed_role if claimed_role is not None else role,
            },
        )
