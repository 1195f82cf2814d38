"""FastAPI application exposing user registration."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import Body, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field

from birthday_mailer.birthday_job import BirthdayJob, Mailer
from birthday_mailer.errors import DuplicateError, StorageError, ValidationError
from birthday_mailer.mailer import MailSender
from birthday_mailer.registration import MISSING_FIELDS_MESSAGE, RegistrationService
from birthday_mailer.scheduler import build_scheduler, startup_catchup
from birthday_mailer.settings import Settings
from birthday_mailer.user_store import UserStore

LOGGER = logging.getLogger(__name__)

SERVER_ERROR_MESSAGE = "Server error"


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    username: Optional[Any] = None
    email: Optional[Any] = None
    date_of_birth: Optional[Any] = Field(default=None, alias="dateOfBirth")


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def create_app(
    settings: Settings,
    *,
    store: UserStore | None = None,
    mailer: Mailer | None = None,
    enable_scheduler: bool = True,
) -> FastAPI:
    store = store or UserStore(settings.database_path, timeout=settings.store_timeout)
    mailer = mailer or MailSender.from_settings(settings)
    registration = RegistrationService(store, settings)
    job = BirthdayJob(store=store, mailer=mailer, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        store.initialize()
        scheduler = None
        if enable_scheduler:
            if isinstance(mailer, MailSender):
                await asyncio.to_thread(mailer.verify)
            scheduler = build_scheduler(settings, job)
            # runs once, as soon as the scheduler starts
            scheduler.add_job(startup_catchup, args=[settings, job], id="startup-catchup")
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)

    app = FastAPI(title="Birthday Mailer", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.birthday_job = job

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _message(status.HTTP_400_BAD_REQUEST, MISSING_FIELDS_MESSAGE)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _message(status.HTTP_500_INTERNAL_SERVER_ERROR, SERVER_ERROR_MESSAGE)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/register", status_code=status.HTTP_201_CREATED)
    def register(payload: Optional[RegisterRequest] = Body(default=None)) -> JSONResponse:
        data = payload.model_dump(by_alias=True) if payload is not None else {}
        try:
            user = registration.register(data)
        except (ValidationError, DuplicateError) as exc:
            return _message(status.HTTP_400_BAD_REQUEST, str(exc))
        except StorageError:
            LOGGER.exception("Registration failed for %r", data.get("email"))
            return _message(status.HTTP_500_INTERNAL_SERVER_ERROR, SERVER_ERROR_MESSAGE)

        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content={"message": "User registered successfully", "user": user.to_public_dict()},
        )

    if settings.public_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.public_dir, html=True), name="public")

    return app
