import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from chat_api.api.routes.chat import router as chat_router
from chat_api.core.config import settings
from chat_api.core.errors import ChatError, Internal, InvalidArgument
from chat_api.core.log_config import configure_logging
from chat_api.db.init_db import init_db

configure_logging()
logger = logging.getLogger(__name__)


app = FastAPI(title="Chat API", version="0.1.0")

app.include_router(chat_router)

# Local attachment storage is served back from the same process
if settings.blob_backend == "local":
    app.mount("/media", StaticFiles(directory=settings.storage_dir, check_dir=False), name="media")


def _error_response(exc: ChatError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "kind": exc.kind},
        headers=headers,
    )


@app.exception_handler(ChatError)
async def _chat_error_handler(request: Request, exc: ChatError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "path", "query", "form"))
        problems.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return _error_response(InvalidArgument("; ".join(problems) or None))


@app.exception_handler(SQLAlchemyError)
async def _db_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(Internal())


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(Internal())


@app.on_event("startup")
def _startup() -> None:
    init_db()


@app.get("/health")
def health():
    return {"status": "ok"}
