import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from portfolio.chat.main import router as chat_router
from portfolio.projects.main import router as projects_router
from portfolio.shared.cors import setup_cors
from portfolio.shared.database import init_db
from portfolio.shared.errors import register_error_handlers
from portfolio.shared.security_headers import setup_security_headers

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Portfolio API",
    version="1.0.0",
    description="Portfolio projects, admin management and per-project AI chat",
    lifespan=lifespan,
)

setup_cors(app)
setup_security_headers(app)
register_error_handlers(app)

app.include_router(projects_router)
app.include_router(chat_router)
