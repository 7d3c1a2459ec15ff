import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from onboarding.api.v1.router import router as v1_router
from onboarding.core.config import settings
from onboarding.core.errors import OnboardingError, PersistenceFailure
from onboarding.core.telemetry import setup_telemetry
from onboarding.schemas.common import ErrorResponse

logging.basicConfig(level=settings.log_level)
log = logging.getLogger(__name__)

app = FastAPI(title="Vendor Onboarding API", version="0.1.0")


@app.exception_handler(OnboardingError)
async def onboarding_error_handler(request: Request, exc: OnboardingError) -> JSONResponse:
    body = ErrorResponse(code=exc.code, message=exc.message, details=exc.details, retryable=exc.retryable)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def storage_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("storage failure on %s %s", request.method, request.url.path)
    failure = PersistenceFailure()
    body = ErrorResponse(code=failure.code, message=failure.message, retryable=True)
    return JSONResponse(status_code=failure.status_code, content=body.model_dump())


setup_telemetry(app)
app.include_router(v1_router)
