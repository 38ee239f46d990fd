from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette import status

from s3_broker.routes.buckets import router as buckets_router
from s3_broker.services.dependencies import get_s3_config
from s3_broker.services.setup import (
    BucketNotFoundError,
    BucketProviderError,
    BucketStoreError,
    PolicyTemplateError,
)


def _ensure_logging(level: str = "INFO") -> None:
    formatter = logging.Formatter("%(levelname)s: %(name)s: %(message)s")
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format="%(levelname)s: %(name)s: %(message)s")
    else:
        root.setLevel(level)
        for handler in root.handlers:
            handler.setFormatter(formatter)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _ensure_logging(get_s3_config().log_level)
    yield


app = FastAPI(lifespan=lifespan)

app.include_router(buckets_router)


def _phase(exc: BucketStoreError) -> str | None:
    return exc.phase.value if exc.phase is not None else None


@app.exception_handler(BucketNotFoundError)
async def bucket_not_found_handler(request: Request, exc: BucketNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc), "phase": _phase(exc)},
    )


@app.exception_handler(PolicyTemplateError)
async def policy_template_error_handler(request: Request, exc: PolicyTemplateError) -> JSONResponse:
    """The bucket exists at this point; only its policy is missing."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


@app.exception_handler(BucketProviderError)
async def bucket_provider_error_handler(request: Request, exc: BucketProviderError) -> JSONResponse:
    """Map S3 provider failures to 502 Bad Gateway.

    The provider's error code is passed through so clients can tell a transient
    failure from a permanent one, and `phase` tells a failed delete where to
    resume from.
    """
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": exc.message, "code": exc.code, "phase": _phase(exc)},
    )


@app.exception_handler(BucketStoreError)
async def bucket_store_error_handler(request: Request, exc: BucketStoreError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": str(exc), "phase": _phase(exc)},
    )


@app.get("/")
async def root():
    return {"message": "Hello World! S3 broker is running."}
