"""Entry point for the validation HTTP service."""

import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from blockstore.flatfs_store import FlatFSBlockStore
from common.exceptions import (
    BlockCheckException,
    ContractViolationError,
    InvalidIdentifierError,
    StoreError,
    ValidationCancelledError,
)
from common.logging_config import setup_logging
from service import service_locator
from service.config import SERVICE_HOST, SERVICE_PORT
from service.routes.storage_routes import router as storage_router
from service.routes.validation_routes import router as validation_router
from validator import config as validator_config

logger = setup_logging('service')

app = FastAPI(
    title="Blockcheck Validator",
    description="DAG completeness and integrity validation for content-addressed block stores",
    version="1.0.0"
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Open the configured block store unless one was injected already.
    """
    setup_logging('validator')
    setup_logging('blockstore')

    if service_locator.get_block_store() is not None:
        logger.info("Using injected block store")
        return

    store = FlatFSBlockStore(validator_config.REPO_PATH, hash_on_read=validator_config.HASH_ON_READ)
    service_locator.set_block_store(store, concurrency=validator_config.WALK_CONCURRENCY)
    logger.info(f"Validator service ready [repo={store.repo_path}]")


@app.exception_handler(InvalidIdentifierError)
async def invalid_identifier_handler(request: Request, exc: InvalidIdentifierError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Invalid identifier error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "code": "INVALID_ROOT_CID"}
    )


@app.exception_handler(ContractViolationError)
async def contract_violation_handler(request: Request, exc: ContractViolationError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Contract violation: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "code": "CONTRACT_VIOLATION"}
    )


@app.exception_handler(ValidationCancelledError)
async def validation_cancelled_handler(request: Request, exc: ValidationCancelledError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Validation cancelled: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_408_REQUEST_TIMEOUT,
        content={"detail": str(exc), "code": "VALIDATION_CANCELLED"}
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Store error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc), "code": "STORE_UNAVAILABLE"}
    )


@app.exception_handler(BlockCheckException)
async def blockcheck_exception_handler(request: Request, exc: BlockCheckException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Blockcheck exception: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "code": "INTERNAL_ERROR"}
    )


app.include_router(validation_router)
app.include_router(storage_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "Blockcheck Validator API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "validator"}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "service.main:app",
        host=SERVICE_HOST,
        port=SERVICE_PORT
    )


if __name__ == "__main__":
    main()
