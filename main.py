import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings
from database import EventRepository
from model import FieldError, ValidationErrorResponse
from routers import events
from validation import EventValidationError

logger = logging.getLogger("event_service")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _validation_response(errors) -> JSONResponse:
    body = ValidationErrorResponse(errors=errors)
    return JSONResponse(status_code=422, content=body.model_dump())


async def event_validation_handler(request: Request, exc: EventValidationError) -> JSONResponse:
    return _validation_response(exc.errors)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Bad ids and unparseable JSON are malformed requests (400); type errors in the body are 422."""
    errors = exc.errors()
    for err in errors:
        loc = err.get("loc") or ()
        if err.get("type") == "json_invalid" or (loc and loc[0] == "path"):
            return JSONResponse(status_code=400, content={"detail": err.get("msg", "Bad request")})

    field_errors = []
    for err in errors:
        loc = [str(part) for part in err.get("loc") or () if part not in ("body", "query")]
        field_errors.append(FieldError(field=".".join(loc) or "body", message=err.get("msg", "invalid value")))
    return _validation_response(field_errors)


def create_app(settings: Optional[Settings] = None, repository: Optional[EventRepository] = None) -> FastAPI:
    """Build the application.

    When no repository is given one is created from ``settings`` on startup:
    the pool is opened, the table created if ``INIT_SCHEMA`` is set, and the
    database pinged so an unreachable server fails the boot.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "repository", None) is None:
            owned = EventRepository.from_settings(settings)
            if settings.init_schema:
                owned.create_schema()
            owned.ping()
            logger.info("Database %s reachable", settings.db_name)
            app.state.repository = owned
        yield
        # Injected repositories belong to the caller.
        if owned is not None:
            owned.close()
            app.state.repository = None

    app = FastAPI(
        title="Event Service",
        description="CRUD service for calendar events",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.repository = repository

    origins = settings.origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(EventValidationError, event_validation_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(events.router)

    @app.get("/")
    def root():
        return {"status": "Event Service running"}

    return app


load_dotenv()
settings = Settings.from_env()
logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
app = create_app(settings)


if __name__ == "__main__":
    import uvicorn

    logger.info("Server running at %s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)
