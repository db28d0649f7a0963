from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import Settings, get_settings
from .core.logging import configure_logging
from .api.routes_companies import router as companies_router

configure_logging()
settings = get_settings()


def _split_origins(raw: str | None) -> List[str]:
    return [o.strip() for o in (raw or "").split(",") if o.strip()]


def cors_origins(settings: Settings) -> List[str]:
    """
    - prod: FRONTEND_ORIGIN is required, never "*".
    - otherwise: "*" if CORS_ALLOW_ALL_ORIGINS or nothing is configured.
    """
    configured = _split_origins(settings.FRONTEND_ORIGIN)
    if settings.ENV.lower() == "prod":
        if not configured:
            raise RuntimeError(
                "FRONTEND_ORIGIN must be set in production; refusing to start with wide-open CORS."
            )
        return configured
    if settings.CORS_ALLOW_ALL_ORIGINS or not configured:
        return ["*"]
    return configured


app = FastAPI(title="Company DB API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(settings),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=False,
)

app.include_router(companies_router, prefix=settings.API_PREFIX)


@app.get("/healthz")
def healthz():
    return {"status": "ok"}
