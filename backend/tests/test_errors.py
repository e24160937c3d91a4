# backend/tests/test_errors.py

from backend.medifyme.errors import ConflictSoft, MedifyError, NotFoundError, ProviderError


def test_status_defaults_come_from_the_class():
    assert MedifyError("x").status_code == 400
    assert NotFoundError("x").status_code == 400
    assert ConflictSoft("x").status_code == 212
    assert ProviderError("x").status_code == 500


def test_explicit_status_overrides_class_default():
    error = ConflictSoft("Already Accepted", status_code=400)
    assert error.to_payload() == {"message": "Already Accepted", "status": 400}
