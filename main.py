import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from fastapi import Body, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
import services
from config import settings
from logging_config import setup_logging
from schemas import CropIn, InterestIn, InterestStatusUpdate, UserIn
from services import ListingError

logger = logging.getLogger(__name__)


# -----------------------
# Utilities
# -----------------------

@contextmanager
def failure_message(message: str) -> Iterator[None]:
    """Turn unexpected errors (bad ObjectId, store failures) into a 500 ListingError."""
    try:
        yield
    except ListingError:
        raise
    except Exception as e:
        logger.exception(message)
        raise ListingError(message, error=str(e)) from e


async def listing_error_handler(request: Request, exc: ListingError) -> JSONResponse:
    content: Dict[str, Any] = {"message": exc.message}
    if exc.error is not None:
        content["error"] = exc.error
    return JSONResponse(status_code=exc.status_code, content=content)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown paths and unsupported methods both read as a missing route
    if exc.status_code in (404, 405):
        return JSONResponse(status_code=404, content={"message": "Route not found"})
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers)


async def server_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Server error: %s", exc, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Internal server error", "error": str(exc)})


def create_app() -> FastAPI:
    setup_logging(settings.log_level)

    app = FastAPI(title=settings.project_name, version=settings.api_version)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ListingError, listing_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, server_error_handler)

    @app.on_event("startup")
    def startup_event() -> None:
        if database.db is None:
            database.connect()

    @app.on_event("shutdown")
    def shutdown_event() -> None:
        database.close()

    return app


app = create_app()


# -----------------------
# 0. Health
# -----------------------

@app.get("/")
def read_root():
    return {
        "message": "KrishiLink Server is Running",
        "status": "success",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "endpoints": {
            "crops": "/crops",
            "latestCrops": "/crops/latest",
            "health": "/health",
        },
    }


@app.get("/health")
def health():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected",
    }


# -----------------------
# 1. Crops
# -----------------------

@app.get("/crops")
def list_crops(search: Optional[str] = None):
    with failure_message("Failed to fetch crops"):
        return services.list_crops(search)


@app.get("/crops/latest")
def latest_crops():
    with failure_message("Failed to fetch latest crops"):
        return services.latest_crops()


@app.get("/crops/{crop_id}")
def get_crop(crop_id: str):
    with failure_message("Failed to fetch crop"):
        return services.get_crop(crop_id)


@app.get("/my-crops/{email}")
def my_crops(email: str):
    with failure_message("Failed to fetch user crops"):
        return services.crops_by_owner(email)


@app.post("/crops")
def create_crop(crop: CropIn):
    with failure_message("Failed to add crop"):
        return services.create_crop(crop)


@app.put("/crops/{crop_id}")
def update_crop(crop_id: str, payload: Dict[str, Any] = Body(...)):
    with failure_message("Failed to update crop"):
        return services.update_crop(crop_id, payload)


@app.delete("/crops/{crop_id}")
def delete_crop(crop_id: str):
    with failure_message("Failed to delete crop"):
        return services.delete_crop(crop_id)


# -----------------------
# 2. Interests
# -----------------------

@app.post("/interests")
def add_interest(interest: InterestIn):
    with failure_message("Failed to add interest"):
        return services.add_interest(interest)


@app.get("/my-interests/{email}")
def my_interests(email: str):
    with failure_message("Failed to fetch interests"):
        return services.interests_for_user(email)


@app.put("/interests/status")
def update_interest_status(update: InterestStatusUpdate):
    with failure_message("Failed to update interest status"):
        return services.update_interest_status(update)


# -----------------------
# 3. Users
# -----------------------

@app.post("/users")
def save_user(user: UserIn):
    with failure_message("Failed to save user"):
        return services.save_user(user)


@app.get("/users/{email}")
def get_user(email: str):
    with failure_message("Failed to fetch user"):
        return services.get_user(email)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
