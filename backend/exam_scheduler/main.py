import logging
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from . import telemetry_pipeline
from .config import get_settings
from .db.monitoring import check_database
from .db.session import get_engine
from .logging_config import configure_logging
from .schedule_routes import router as schedule_router

PROFILE_PATH = "/schedule/profile"

configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="Exam Scheduler Backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(schedule_router)
telemetry_pipeline.install()

settings_snapshot = get_settings()
logger.info("Scheduler starting with weakness index URL: %s", settings_snapshot.weakness_index_url)
logger.info("Topic catalog configured: %s", bool(settings_snapshot.topic_catalog_url))


def _field_path(location: List[Any]) -> str:
    path = ""
    for part in location:
        if part == "body" and not path:
            continue
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path or "body"


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [{"field": _field_path(list(error.get("loc", ()))), "message": error.get("msg", "")} for error in exc.errors()]
    status_code = (
        status.HTTP_400_BAD_REQUEST
        if request.method == "POST" and request.url.path == PROFILE_PATH
        else status.HTTP_422_UNPROCESSABLE_ENTITY
    )
    detail = {"code": "ValidationError", "message": "The request payload is invalid.", "fields": fields}
    return JSONResponse(status_code=status_code, content=jsonable_encoder({"detail": detail}))


@app.get("/healthz")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/healthz/database")
def database_health() -> Dict[str, object]:
    try:
        report = check_database(get_engine())
    except Exception as exc:  # noqa: BLE001
        logger.exception("Database health check failed")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"status": "ok", **report}
