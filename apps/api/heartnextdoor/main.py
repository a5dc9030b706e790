from __future__ import annotations

import logging
import os

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import CONFIG
from .db import initialize_db
from .errors import HeartError
from .routes import admin as admin_routes
from .routes import appointments as appointment_routes
from .routes import chat as chat_routes
from .routes import checkins as check_in_routes
from .routes import community as community_routes
from .routes import content as content_routes
from .routes import journal as journal_routes
from .routes import partner as partner_routes
from .routes import partnerships as partnership_routes
from .routes import signups as signup_routes
from .routes import users as user_routes

logger = logging.getLogger(__name__)

initialize_db()

app = FastAPI(
    title="The Heart Next Door API",
    version="0.1.0",
    description="Maternal wellness check-ins, journaling, care-team alerts and partner sharing",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CONFIG.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


@app.exception_handler(HeartError)
async def heart_error_handler(request: Request, exc: HeartError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request failed", extra={"path": request.url.path, "error": exc.message})
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        errors.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(status_code=400, content={"message": "Invalid request data", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error", "error": str(exc) or exc.__class__.__name__},
    )


app.include_router(user_routes.router)
app.include_router(check_in_routes.router)
app.include_router(journal_routes.router)
app.include_router(chat_routes.router)
app.include_router(content_routes.router)
app.include_router(appointment_routes.router)
app.include_router(community_routes.router)
app.include_router(partnership_routes.router)
app.include_router(partner_routes.router)
app.include_router(signup_routes.router)
app.include_router(admin_routes.router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


def run() -> None:
    """Serve the API with uvicorn. `HOST` and `PORT` override the bind address."""
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "heartnextdoor.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    run()
