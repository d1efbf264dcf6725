"""Sentralisert CORS-konfigurasjon for portfolio-API-et."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portfolio.shared.config import Settings, get_settings


# Development origins (kun i dev-miljø)
DEV_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
]


def get_allowed_origins(settings: Settings) -> list[str]:
    """Hent liste over tillatte CORS origins basert på miljø."""
    # Produksjons-origins kommer fra CORS_ORIGINS (kommaseparert)
    origins = [origin.rstrip("/") for origin in settings.cors_origins]

    if settings.frontend_url:
        clean_url = settings.frontend_url.rstrip("/")
        if clean_url not in origins:
            origins.append(clean_url)

    if not settings.is_production:
        origins.extend(DEV_ORIGINS)

    return origins


def setup_cors(app: FastAPI, settings: Settings = None) -> None:
    """Legg til CORS-middleware på en FastAPI-app."""
    settings = settings or get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(settings),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
