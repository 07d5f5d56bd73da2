"""Module: main."""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vaxwise.api.v1.api import api_router
from vaxwise.api.v1.routes.notifications import notification_out
from vaxwise.core.config import settings
from vaxwise.core.errors import DispatchFailure, VaxwiseError
from vaxwise.db.init_db import init_db

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="VaxWise API", version="0.1.0")

app.include_router(api_router, prefix="/api/v1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DispatchFailure)
async def dispatch_failure_handler(request: Request, exc: DispatchFailure):
    # Callers still get the notification as persisted, with whatever channels were recorded.
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "notification": jsonable_encoder(notification_out(exc.notification))},
    )


@app.exception_handler(VaxwiseError)
async def domain_error_handler(request: Request, exc: VaxwiseError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Schema is owned by Alembic in deployed environments; create_all covers fresh dev/test databases.
init_db()
