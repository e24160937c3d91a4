# medifyme/main.py
#
# This is the main entry point for the FastAPI application.
# It creates the FastAPI app instance, includes the modular routers,
# and sets up middleware and exception handlers.
#
# The `handler` function is the entry point for AWS Lambda.

import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from mangum import Mangum
from starlette.exceptions import HTTPException as StarletteHTTPException

from .database import close_store
from .errors import MedifyError
from .routers import doctors, gpt, meet, patients, payments

# --- Logging ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup")
    yield
    close_store()
    logger.info("Application shutdown")


app = FastAPI(
    title="MedifyMe API",
    description="API for managing doctor-patient interactions",
    version="1.0.0",
    docs_url="/api-docs",
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# --- Exception handlers ---
@app.exception_handler(MedifyError)
async def medify_error_handler(request: Request, exc: MedifyError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"message": "Invalid request", "status": 400})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # A known path with the wrong method is still an unmatched route.
    if exc.status_code in (404, 405):
        return PlainTextResponse("Page Not Found", status_code=404)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


# Include the routers
app.include_router(patients.router)
app.include_router(doctors.router)
app.include_router(gpt.router)
app.include_router(payments.router)
app.include_router(meet.router)


@app.get("/", include_in_schema=False)
def home():
    return PlainTextResponse("home")


@app.get("/health", tags=["Health Check"])
def health_check():
    """A simple endpoint to confirm the API is running."""
    return {"status": "ok"}


# This handler is the entry point for AWS Lambda
handler = Mangum(app, lifespan="off")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("backend.medifyme.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
