import logging
import os
from contextlib import asynccontextmanager
from typing import Literal

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

import database
from analytics import router as analytics_router
from auth import StaleSessionError, get_verified_vendor, router as auth_router, stale_session_handler
from blogs import router as blogs_router
from cache_utils import ComprehensiveCacheInvalidation
from categories import router as categories_router
from products import router as products_router
from utils import action_error, validation_message

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_indexes():
    if database.db is None:
        return
    try:
        database.ensure_indexes(database.db)
    except Exception:
        logger.exception("Could not ensure indexes")


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_indexes()
    yield


app = FastAPI(title="VibeCart Vendor API", lifespan=lifespan)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(categories_router)
app.include_router(blogs_router)
app.include_router(products_router)
app.include_router(analytics_router)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return action_error(validation_message(exc))


app.add_exception_handler(StaleSessionError, stale_session_handler)


@app.get("/")
def read_root():
    return {"message": "VibeCart Vendor API running"}


@app.get("/test")
def test_database():
    """Test endpoint to check if database is available and accessible"""
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }

    db = database.db
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_name"] = db.name
            response["connection_status"] = "Connected"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    return response


@app.post("/api/vendor/cache/refresh")
def refresh_cache(scope: Literal["products", "blogs", "all"] = "all",
                  vendor: dict = Depends(get_verified_vendor)):
    """Force the storefront to drop its cached listings."""
    actions = {
        "products": ComprehensiveCacheInvalidation.all_products,
        "blogs": ComprehensiveCacheInvalidation.all_blogs,
        "all": ComprehensiveCacheInvalidation.everything,
    }
    logger.info("Vendor %s requested a %s cache refresh", vendor["_id"], scope)
    ok = actions[scope]()
    return {"success": ok, "message": "Cache invalidated" if ok else "Cache invalidation failed"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
