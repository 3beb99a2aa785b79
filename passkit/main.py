"""
PassKit backend application.

Run with: uvicorn passkit.main:app
"""
import logging
import sys
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables from .env file before settings are read
load_dotenv()

from .config import settings  # noqa: E402
from .db import init_db  # noqa: E402
from .exception_handlers import register_exception_handlers  # noqa: E402
from .routers import passes  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

# Use a consistent logger name for all app logs
logger = logging.getLogger("passkit")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting PassKit backend (env={settings.ENV}, pass type={settings.PASSKIT_PASS_TYPE_IDENTIFIER})")
    init_db()
    logger.info("Database tables ready")
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="PassKit Backend", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[passes.SERIAL_NUMBER_HEADER, passes.PASS_VERSION_HEADER],
    )

    register_exception_handlers(app)
    app.include_router(passes.router)
    return app


app = create_app()
