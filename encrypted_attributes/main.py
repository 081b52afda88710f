"""
FastAPI application entrypoint.

Run locally:  uvicorn encrypted_attributes.main:app --reload
"""

import logging

from fastapi import FastAPI

from encrypted_attributes.api.routes import router
from encrypted_attributes.config import settings
from encrypted_attributes.models.database import Base, engine

logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s | %(name)s | %(message)s")

app = FastAPI(
    title="Encrypted Attributes API",
    description=(
        "Accounts whose passwords are stored as salted digests and checked "
        "against candidate plaintexts without ever being decrypted."
    ),
    version="1.0.0",
)

app.include_router(router, prefix="/api/v1")


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
