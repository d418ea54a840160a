# src/timesync_api/main.py

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import email_utils
from .config import settings

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("--- TimeSyncAPI (FastAPI) Starting Up ---")
    logger.info("CVR API URL: %s", settings.CVR_API_URL)
    logger.info("SendGrid sender: %s <%s>", settings.SENDGRID_FROM_NAME, settings.SENDGRID_FROM_EMAIL)
    logger.info("SendGrid API key is set: %s", "Yes" if settings.SENDGRID_API_KEY else "NO")
    app.state.http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        logger.info("--- TimeSyncAPI shut down ---")


app = FastAPI(
    title="TimeSync API",
    description="Server-side helpers for TimeSync: company registry lookup and transactional email.",
    version="0.1.0",
    lifespan=lifespan,
)


async def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


# --- Error envelope: every failure leaves as {"error": ...} ---

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("API: Rejected request to %s: %s", request.url.path, exc.errors())
    return JSONResponse({"error": "Invalid JSON body"}, status_code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("API: Unhandled error on %s", request.url.path)
    return JSONResponse(
        {"error": f"Internal server error: {exc}"},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


@app.get("/")
async def home() -> Dict[str, str]:
    return {"message": "TimeSync API is running!"}


# --- Company registry lookup ---

@app.get("/api/cvr-proxy")
async def cvr_proxy(
    search: Optional[str] = Query(None, description="Company name, CVR number or phone number"),
    country: Optional[str] = Query(None, description="Registry country code"),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    if not search or not search.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Search value cannot be empty")

    params = {"search": search, "country": country or settings.CVR_DEFAULT_COUNTRY}
    headers = {"Content-Type": "application/json", "User-Agent": settings.CVR_USER_AGENT}
    try:
        logger.info("CVR: Looking up %r (%s)", search, params["country"])
        response = await client.get(
            settings.CVR_API_URL, params=params, headers=headers, follow_redirects=True
        )
    except httpx.RequestError as e:
        logger.error("CVR: Request error calling CVR API: %s", e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e) or repr(e))

    if not response.is_success:
        logger.warning("CVR: Upstream answered %s for %r", response.status_code, search)
        raise HTTPException(
            status_code=response.status_code,
            detail=f"CVR API request failed with status {response.status_code}",
        )

    try:
        return JSONResponse(response.json())
    except ValueError as e:
        logger.error("CVR: Upstream returned a non-JSON body: %s", e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


# --- Transactional email ---

@app.post("/api/send-email")
async def send_email(
    body: Dict[str, Any] = Body(...),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    to = body.get("to")
    subject = body.get("subject")
    html = body.get("html")
    batch = body.get("batch")

    try:
        if isinstance(batch, list):
            if not batch:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Batch array is empty")
            if not subject or not html:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Missing required fields: subject or html for batch email",
                )
            if not all(isinstance(r, dict) and r.get("email") for r in batch):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Every batch recipient needs an email",
                )
            messages = email_utils.build_batch_messages(batch, subject, html)
            await email_utils.send_messages(client, messages)
            return {"success": True, "message": f"{len(messages)} emails sent successfully"}

        if not to or not subject or not html:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing required fields: to, subject, or html",
            )
        await email_utils.send_messages(client, [email_utils.build_message(to, subject, html)])
        return {"success": True, "message": "Email sent successfully"}

    except HTTPException:
        raise
    except email_utils.EmailSendError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"SendGrid error: {e.message}",
        )
    except Exception as e:
        logger.exception("API: Unexpected error while sending email")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal server error: {e}",
        )
