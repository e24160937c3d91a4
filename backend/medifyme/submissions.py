# medifyme/submissions.py
#
# Creates visits, prescriptions and tests from submitted forms. Files are run
# through the enrichment gateway one at a time in upload order; the first
# failure aborts the submission and no record is written.

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from starlette.concurrency import run_in_threadpool

from .crud import (
    db_append_reference,
    db_create_prescription,
    db_create_test,
    db_create_visit,
    db_get_patient,
)
from .database import Store
from .enrichment import EnrichmentGateway
from .errors import NotFoundError, ValidationError
from .models import FileResult

logger = logging.getLogger(__name__)

# (filename, content)
UploadedFile = Tuple[str, bytes]


class SubmissionPipeline:
    def __init__(self, store: Store, gateway: EnrichmentGateway):
        self.store = store
        self.gateway = gateway

    async def _enrich_all(self, files: Sequence[UploadedFile], wants_ocr: bool) -> List[FileResult]:
        results = []
        for filename, content in files:
            results.append(await self.gateway.enrich(content, filename, wants_ocr))
        return results

    async def _submit(
        self,
        patient_id: Optional[str],
        files: Sequence[UploadedFile],
        wants_ocr: bool,
        build: Callable[[List[FileResult]], Dict[str, Any]],
        create: Callable[[Store, Dict[str, Any]], Dict[str, Any]],
        key_name: str,
        patient_list: str,
        require_files: bool = False,
    ) -> Dict[str, Any]:
        if not patient_id:
            raise ValidationError("No patient id provided")
        if require_files and not files:
            raise ValidationError("No files provided")

        patient = await run_in_threadpool(db_get_patient, self.store, patient_id)
        if not patient:
            raise NotFoundError("No Patient Found")

        results = await self._enrich_all(files, wants_ocr)
        record = await run_in_threadpool(create, self.store, build(results))
        await run_in_threadpool(
            db_append_reference, self.store.patients, "patientId", patient_id, patient_list, record[key_name]
        )
        logger.info("SUBMIT: Added %s %s to patient %s", key_name, record[key_name], patient_id)
        return record

    async def submit_visit(self, patient_id: Optional[str], files: Sequence[UploadedFile], date: Optional[str] = None,
                           doctor_comments: Optional[str] = None, patient_comments: Optional[str] = None,
                           doctor_name: Optional[str] = None) -> Dict[str, Any]:
        def build(results: List[FileResult]) -> Dict[str, Any]:
            return {
                "date": date,
                "doctorComments": doctor_comments,
                "patientComments": patient_comments,
                "doctorName": doctor_name,
                "patient": patient_id,
                "fileUrl": [result.url for result in results],
            }

        return await self._submit(patient_id, files, False, build, db_create_visit, "visitId", "visits")

    async def submit_prescription(self, patient_id: Optional[str], files: Sequence[UploadedFile],
                                  date: Optional[str] = None, medications: Optional[str] = None,
                                  prescription_comments: Optional[str] = None) -> Dict[str, Any]:
        def build(results: List[FileResult]) -> Dict[str, Any]:
            return {
                "date": date,
                "medications": medications,
                "prescriptionComments": prescription_comments,
                "patient": patient_id,
                "files": [result.model_dump() for result in results],
            }

        return await self._submit(
            patient_id, files, True, build, db_create_prescription, "prescriptionId", "prescriptions",
            require_files=True,
        )

    async def submit_test(self, patient_id: Optional[str], files: Sequence[UploadedFile], date: Optional[str] = None,
                          test_name: Optional[str] = None, test_comments: Optional[str] = None) -> Dict[str, Any]:
        def build(results: List[FileResult]) -> Dict[str, Any]:
            return {
                "date": date,
                "testName": test_name,
                "testComments": test_comments,
                "patient": patient_id,
                "files": [result.model_dump() for result in results],
            }

        return await self._submit(patient_id, files, True, build, db_create_test, "testId", "tests")
