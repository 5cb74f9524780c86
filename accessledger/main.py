"""FastAPI application exposing the purchase ledger and entitlement API."""
import logging

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from . import app_context  # noqa: E402
from .app.catalog import get_normalizer  # noqa: E402
from .app.routes.accounts import router as accounts_router  # noqa: E402
from .app.routes.admin import router as admin_router  # noqa: E402
from .app.routes.entitlements import router as entitlements_router  # noqa: E402
from .app.routes.purchases import router as purchases_router  # noqa: E402
from .app.services.purchases import get_app_config  # noqa: E402

logger = logging.getLogger("accessledger")

CONFIG = get_app_config()
DB_CFG = CONFIG.database.as_connect_kwargs()


def get_conn():
    return psycopg2.connect(**DB_CFG)


app_context.configure(get_conn=get_conn)

app = FastAPI(title="Access Ledger API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(CONFIG.cors_allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(purchases_router)
app.include_router(entitlements_router)
app.include_router(accounts_router)
app.include_router(admin_router)


@app.on_event("startup")
def validate_catalog() -> None:
    normalizer = get_normalizer()
    logger.info("Loaded product catalog with %s entries", len(normalizer.entries))


@app.get("/api/health")
def health() -> dict:
    return {"status": "ok"}
