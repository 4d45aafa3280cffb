import logging
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.endpoints import auth
from app.api.endpoints import requirements
from app.core.config import Settings
from app.core.errors import DependencyError, ProcurementError

settings = Settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Procurement Requirements API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ProcurementError)
def procurement_error_handler(request: Request, exc: ProcurementError):
    if isinstance(exc, DependencyError) or exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(RequestValidationError)
def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "code": "VALIDATION_ERROR", "errors": errors},
    )


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok", "timestamp": datetime.utcnow().isoformat()}


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(requirements.router, prefix="/requirements", tags=["requirements"])
