# medifyme/enrichment.py
#
# Uploads a submitted file to object storage and, for images when asked,
# runs OCR on it and has a language model summarize the extracted text.
#
# Every call is made once. There are no retries and no timeouts beyond the
# httpx defaults.

import logging
import mimetypes
import os
import uuid
from typing import Any, Dict, List, Optional

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from .errors import OcrFailedError, ProviderError, UploadFailedError
from .models import FileResult

logger = logging.getLogger(__name__)

# --- Configuration ---
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
MEDIA_BUCKET = os.getenv("MEDIA_BUCKET", "medifyme-media")
MEDIA_BASE_URL = os.getenv("MEDIA_BASE_URL")
MEDIA_FOLDER = os.getenv("MEDIA_FOLDER", "MedifyMe")

OCR_API_URL = os.getenv("OCR_API_URL", "https://api.ocr.space/parse/image")
OCR_API_KEY = os.getenv("OCR_API_KEY")
OCR_ENGINE = "5"

OPENAI_API_BASE_URL = os.getenv("OPENAI_API_BASE_URL", "https://api.openai.com/v1").rstrip("/")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")

RAW = "raw"
IMAGE = "image"

SUMMARY_PROMPT = (
    "Please analyze the plain text obtained via OCR from an image of a prescription. "
    "The text is: {text} "
    "Provide the dosage, precautions, and pointers for each medicine listed. "
    "Additionally, include a section on Medicine General Information that highlights the potential "
    "condition the combination of medicines may indicate. Finally, offer 2-3 general health "
    "suggestions and facts related to the conditions that these medicines may cure. "
    "Send the output in HTML format, only using the tags <p>, <h3> <ul> and <li>. "
    "Do not use any inverted commas or /n"
)


def resource_type_for(filename: str) -> str:
    """PDFs are stored as opaque binaries, everything else as images."""
    return RAW if os.path.splitext(filename or "")[1].lower() == ".pdf" else IMAGE


async def chat_completion(messages: List[Dict[str, Any]], client: httpx.AsyncClient,
                          temperature: Optional[float] = None) -> Dict[str, Any]:
    """Posts to the chat-completions endpoint and returns the provider's JSON untouched."""
    body: Dict[str, Any] = {"model": OPENAI_MODEL, "messages": messages}
    if temperature is not None:
        body["temperature"] = temperature
    headers = {"Authorization": f"Bearer {OPENAI_API_KEY}", "Content-Type": "application/json"}
    try:
        response = await client.post(f"{OPENAI_API_BASE_URL}/chat/completions", json=body, headers=headers)
        response.raise_for_status()
        return response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("LLM: Chat completion failed: %r", e)
        raise ProviderError("Failed to fetch chat completions")


class EnrichmentGateway:
    def __init__(self, s3_client=None, http_client: Optional[httpx.AsyncClient] = None):
        self._s3_client = s3_client
        self.http_client = http_client

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = boto3.client("s3", region_name=AWS_REGION)
        return self._s3_client

    def object_url(self, key: str) -> str:
        if MEDIA_BASE_URL:
            return f"{MEDIA_BASE_URL.rstrip('/')}/{key}"
        return f"https://{MEDIA_BUCKET}.s3.{AWS_REGION}.amazonaws.com/{key}"

    def upload(self, data: bytes, filename: str) -> str:
        """Stores the bytes under the media folder and returns their URL."""
        resource_type = resource_type_for(filename)
        extension = os.path.splitext(filename or "")[1].lower()
        key = f"{MEDIA_FOLDER}/{resource_type}/{uuid.uuid4()}{extension}"
        content_type = mimetypes.guess_type(filename or "")[0] or "application/octet-stream"
        try:
            self.s3_client.put_object(Bucket=MEDIA_BUCKET, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            logger.error("UPLOAD: Storage upload failed for %s: %r", filename, e)
            raise UploadFailedError("Upload failed")
        logger.info("UPLOAD: Stored %s as %s", filename, key)
        return self.object_url(key)

    async def extract_text(self, url: str, client: httpx.AsyncClient) -> str:
        form = {"url": url, "OCREngine": OCR_ENGINE, "filetype": "PNG"}
        try:
            response = await client.post(OCR_API_URL, data=form, headers={"apikey": OCR_API_KEY or ""})
            response.raise_for_status()
            result = response.json()
            if result.get("IsErroredOnProcessing"):
                raise ValueError(result.get("ErrorMessage"))
            return result["ParsedResults"][0]["ParsedText"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("OCR: Request failed for %s: %r", url, e)
            raise OcrFailedError("OCR request failed")

    async def summarize(self, text: str, client: httpx.AsyncClient) -> str:
        messages = [{"role": "user", "content": SUMMARY_PROMPT.format(text=text)}]
        try:
            data = await chat_completion(messages, client, temperature=0.5)
            return data["choices"][0]["message"]["content"]
        except (ProviderError, KeyError, IndexError, TypeError) as e:
            logger.error("OCR: Summary step failed: %r", e)
            raise OcrFailedError("OCR request failed")

    async def enrich(self, data: bytes, filename: str, wants_ocr: bool) -> FileResult:
        """
        Uploads one file. The result always has `url`; `ocr` is set only when
        OCR was requested and the file is an image.
        """
        url = await run_in_threadpool(self.upload, data, filename)
        if not wants_ocr or resource_type_for(filename) != IMAGE:
            return FileResult(url=url, ocr=None)

        if self.http_client is not None:
            text = await self.extract_text(url, self.http_client)
            summary = await self.summarize(text, self.http_client)
        else:
            async with httpx.AsyncClient() as client:
                text = await self.extract_text(url, client)
                summary = await self.summarize(text, client)
        return FileResult(url=url, ocr=summary)


_gateway: Optional[EnrichmentGateway] = None


def get_gateway() -> EnrichmentGateway:
    """FastAPI dependency returning the shared gateway."""
    global _gateway
    if _gateway is None:
        _gateway = EnrichmentGateway()
    return _gateway
