import json
import logging
import os
from contextlib import asynccontextmanager

import firebase_admin
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from firebase_admin import credentials

load_dotenv()

from api.common.cache import create_report_cache
from api.common.config import REPORT_TIMEZONE_NAME
from api.common.log_config import setup_logging
from api.reports.routers import router as reports_router

setup_logging()
logger = logging.getLogger("main")


def load_firebase_credentials():
    """
    Load Firebase credentials.

    Priority: FIREBASE_CREDENTIALS_JSON_CONTENT env var (for production),
    then the file named by FIREBASE_CREDENTIALS_FILE (for local development),
    then Application Default Credentials.
    """
    cred_json_content = os.environ.get('FIREBASE_CREDENTIALS_JSON_CONTENT')
    if cred_json_content:
        try:
            cred = credentials.Certificate(json.loads(cred_json_content))
        except json.JSONDecodeError as e:
            logger.critical("FIREBASE_CREDENTIALS_JSON_CONTENT is set but contains invalid JSON: %s", e)
            raise
        logger.info("Loaded Firebase credentials from FIREBASE_CREDENTIALS_JSON_CONTENT env var.")
        return cred

    local_cred_file = os.environ.get('FIREBASE_CREDENTIALS_FILE')
    if local_cred_file:
        try:
            cred = credentials.Certificate(local_cred_file)
        except FileNotFoundError:
            logger.critical("Local credentials file '%s' not found.", local_cred_file)
            raise
        logger.info("Loaded Firebase credentials from local JSON file: %s", local_cred_file)
        return cred

    logger.info("No Firebase credentials configured, using Application Default Credentials.")
    return credentials.ApplicationDefault()


def init_firebase():
    if firebase_admin._apps:
        return
    firebase_admin.initialize_app(load_firebase_credentials())


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_firebase()
    app.state.report_cache = create_report_cache()
    logger.info("Reports API started (timezone=%s, cache=%s)",
                REPORT_TIMEZONE_NAME, "on" if app.state.report_cache else "off")
    yield
    if app.state.report_cache is not None:
        app.state.report_cache.client.close()


app = FastAPI(title="Pharmacy Reports API", lifespan=lifespan)

app.include_router(reports_router, prefix="/reports", tags=["reports"])


@app.get("/")
def read_root():
    """Root endpoint for the API.
    Returns:
        A simple message indicating the API is running.
    """
    return {"message": "Pharmacy Reports API"}


if __name__ == "__main__":
    # Set port from environment variable or default to 8000
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", 8000)))
