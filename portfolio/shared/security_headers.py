"""Sikkerhetsheaders for portfolio-API-et."""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import Response

from portfolio.shared.config import Settings, get_settings


DEFAULT_CSP = (
    "default-src 'self'; "
    "img-src 'self' data: https:; "
    "font-src 'self' data: https:; "
    "script-src 'self' 'unsafe-inline'; "
    "style-src 'self' 'unsafe-inline'; "
    "connect-src 'self'"
)

HSTS_VALUE = "max-age=31536000; includeSubDomains; preload"
NO_STORE = "no-cache, no-store, must-revalidate"


def security_headers(path: str, production: bool) -> dict[str, str]:
    """Headers som legges på hvert svar, med mindre ruten har satt dem selv."""
    headers = {
        "Content-Security-Policy": DEFAULT_CSP,
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
    }
    # Admin-svar inneholder utkast og skal aldri caches
    if "/admin" in path or path.startswith("/chat"):
        headers["Cache-Control"] = NO_STORE
    if production:
        headers["Strict-Transport-Security"] = HSTS_VALUE
    return headers


def setup_security_headers(app: FastAPI, settings: Optional[Settings] = None) -> None:
    """Legg til CSP, nosniff, X-Frame-Options, Cache-Control og HSTS."""
    production = (settings or get_settings()).is_production

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in security_headers(request.url.path, production).items():
            response.headers.setdefault(name, value)
        return response
