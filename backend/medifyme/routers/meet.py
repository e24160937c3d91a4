# medifyme/routers/meet.py
#
# Issues signed tokens for joining video meetings.

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..errors import ProviderError
from ..models import MeetTokenResponse
from ..security import create_meet_token

router = APIRouter(prefix="/meet", tags=["Meet"])


@router.get("/get_token", response_model=MeetTokenResponse, responses={500: {"description": "Signing failed"}})
def get_token():
    try:
        token = create_meet_token()
    except ProviderError as e:
        return JSONResponse(status_code=500, content={"error": e.message})
    return MeetTokenResponse(token=token)
