import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.api.deps import get_auth_context, get_db
from tradesfinder.api.middleware import RequestLogMiddleware
from tradesfinder.api.v1.router import v1_router
from tradesfinder.common.exceptions import (
    AuthenticationRequiredError,
    ExternalServiceError,
    InvalidTransitionError,
    TradesfinderError,
)
from tradesfinder.common.logging import get_logger, setup_logging
from tradesfinder.config import settings
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.jobs.service import JobService

BASE_DIR = Path(__file__).resolve().parent

logger = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Starting tradesfinder (%s)", settings.APP_ENV)
    yield


app = FastAPI(
    title="Tradesfinder API",
    description="Marketplace connecting customers with verified tradespeople",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
origins = settings.ALLOWED_ORIGINS.split(",") if settings.ALLOWED_ORIGINS != "*" else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLogMiddleware)

templates = Jinja2Templates(directory=BASE_DIR / "templates")

# API routes
app.include_router(v1_router, prefix="/api/v1")

jobs = JobService()


# --- Error handling ---


def _is_page(request: Request) -> bool:
    return not request.url.path.startswith("/api/")


@app.exception_handler(TradesfinderError)
async def tradesfinder_error_handler(request: Request, exc: TradesfinderError):
    if isinstance(exc, InvalidTransitionError):
        logger.info("Rejected %s action %r from %s on %s", exc.entity, exc.action, exc.current, request.url.path)
    elif isinstance(exc, ExternalServiceError):
        logger.error("%s call failed on %s: %s", exc.service, request.url.path, exc.reason)

    if _is_page(request):
        if isinstance(exc, AuthenticationRequiredError):
            return RedirectResponse(f"/login?callbackUrl={request.url.path}", status_code=303)
        return templates.TemplateResponse(
            request, "error.html", {"message": exc.detail}, status_code=exc.status_code
        )
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", message)
    return JSONResponse({"error": message, "code": "validation_error"}, status_code=400)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Something went wrong"}, status_code=500)


# --- Page routes ---


@app.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, callbackUrl: str = "/"):
    # Only same-site paths are followed after login
    callback = callbackUrl if callbackUrl.startswith("/") and not callbackUrl.startswith("//") else "/"
    return templates.TemplateResponse(request, "login.html", {"callback_url": callback})


@app.get("/account/jobs/{job_id}", response_class=HTMLResponse)
async def account_job_page(
    request: Request,
    job_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    job = await jobs.get_owned(db, ctx, job_id)
    applications = await jobs.list_applications(db, ctx, job_id)
    return templates.TemplateResponse(
        request,
        "account/job_detail.html",
        {"job": job, "applications": applications},
    )


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "tradesfinder",
        "version": "1.0.0",
        "env": settings.APP_ENV,
    }
