"""
Define application startup and shutdown procedures
"""

import re
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI
from core.config import get_settings
from core.db import create_db_and_tables
from core.logger import logger


def _log_setting(key: str, value):
    """Log a setting, masking the password of the database URI"""
    if "SQLALCHEMY_DATABASE_URI" in key and value is not None:
        # Mask password in database URI if present
        masked_value = re.sub(r"://(.*?):(.*?)@", r"://\1:*****@", value)
        logger.info("  %s: %s", key, masked_value)
    else:
        logger.info("  %s: %s", key, value)


# Handle startup/shutdown tasks
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("In lifespan...starting up")

    settings = get_settings()

    logger.info("Configuration Settings:")
    # Computed fields don't appear in vars()
    _log_setting("SQLALCHEMY_DATABASE_URI", settings.SQLALCHEMY_DATABASE_URI)
    for key, value in vars(settings).items():
        _log_setting(key, value)

    if settings.STORAGE_BACKEND == "local":
        storage_path = Path(settings.STORAGE_DIRECTORY_PATH)
        if not storage_path.exists():
            logger.info("Creating storage directory %s", storage_path)
            storage_path.mkdir(parents=True, exist_ok=True)

    if settings.CREATE_TABLES_ON_STARTUP:
        try:
            logger.info("Initializing database...")
            create_db_and_tables()
        except Exception as e:
            logger.error("Database initialization failed: %s", e)
            raise RuntimeError(
                f"Cannot start application: database initialization failed - {e}"
            ) from e

    logger.info("In lifespan...yield")
    try:
        yield
    finally:
        # Shutdown
        logger.info("In lifespan...shutting down")
