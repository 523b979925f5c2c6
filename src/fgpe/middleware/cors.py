"""CORS for browser-hosted game clients."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fgpe.config import Settings

# Player endpoints are plain JSON reads and writes; no cookies are involved.
STUDENT_METHODS = ["GET", "POST", "OPTIONS"]


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the configured origins, plus any origin matching ``cors_origin_regex``."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex,
        allow_credentials=False,
        allow_methods=STUDENT_METHODS,
        allow_headers=["Content-Type", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
        max_age=settings.cors_max_age,
    )
