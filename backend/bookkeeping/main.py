from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from bookkeeping.core.config import settings
from bookkeeping.core.logging import configure_logging
from bookkeeping.db.database import close_database, init_database
from bookkeeping.routers.web import router as web_router

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_database()
    try:
        yield
    finally:
        close_database()


app = FastAPI(lifespan=lifespan)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    session_cookie="madrasah_session",
    same_site="strict",
    https_only=settings.cookie_secure,
)


app.include_router(web_router)


def describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = str(first.get("loc", ["", "request"])[-1])
    if first.get("type") == "missing":
        return f"{field} is required."
    return f"{field}: {first.get('msg', 'invalid value')}"


@app.exception_handler(HTTPException)
def http_exc_handler(_, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "detail": exc.detail})


@app.exception_handler(RequestValidationError)
def validation_exc_handler(_, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"ok": False, "detail": describe_validation_error(exc)})
