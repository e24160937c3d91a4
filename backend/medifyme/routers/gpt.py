# medifyme/routers/gpt.py
#
# Passes a chat conversation through to the language model and returns the
# provider's response as-is.

import httpx
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..enrichment import chat_completion
from ..errors import ProviderError
from ..models import ChatRequest

router = APIRouter(prefix="/gpt", tags=["GPT"])


@router.post("", responses={500: {"description": "Failed to fetch chat completions"}})
async def chat(body: ChatRequest):
    messages = [message.model_dump(exclude_unset=True) for message in body.messages]
    try:
        async with httpx.AsyncClient() as client:
            return await chat_completion(messages, client)
    except ProviderError as e:
        return JSONResponse(status_code=500, content={"error": e.message})
