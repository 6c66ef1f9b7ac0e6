import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from bucketstore import auth_api, bucket_api, file_api
from bucketstore.config import Settings, get_settings
from bucketstore.dependencies import build_current_session
from bucketstore.repository import Repository
from bucketstore.security import PasswordHasher, TokenSigner
from bucketstore.storage import LocalBucketStorage

logger = logging.getLogger(__name__)

ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    406: "not_acceptable",
    409: "conflict",
    413: "payload_too_large",
    500: "internal_error",
}


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    repository = Repository(settings.database_path)
    storage = LocalBucketStorage(settings.storage_dir)
    signer = TokenSigner(
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
        ttl_seconds=settings.token_ttl_seconds,
    )
    hasher = PasswordHasher()
    current_session = build_current_session(repository, signer)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
        repository.init()
        storage.init()
        logger.info("%s started (env=%s, storage=%s)", settings.app_name, settings.app_env, storage.root)
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def error_response(status_code: int, message: str, code: str, headers: dict | None = None) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": {"code": code, "message": message}},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(_: Request, exc: RequestValidationError):
        missing_fields = [
            ".".join(str(item) for item in error["loc"] if item != "body")
            for error in exc.errors()
            if error.get("type") == "missing"
        ]
        if missing_fields:
            message = f"missing parameters: {', '.join(missing_fields)}"
        else:
            message = "invalid request parameters"
        return error_response(400, message, "bad_request")

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_: Request, exc: HTTPException):
        message = str(exc.detail) if exc.detail else "request failed"
        return error_response(
            exc.status_code,
            message,
            ERROR_CODES.get(exc.status_code, "error"),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return error_response(500, "internal error", "internal_error")

    @app.get("/")
    def root() -> dict:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "environment": settings.app_env}

    app.include_router(
        auth_api.build_router(
            repository=repository,
            signer=signer,
            hasher=hasher,
            current_session=current_session,
        )
    )
    app.include_router(
        bucket_api.build_router(
            settings=settings,
            repository=repository,
            storage=storage,
            current_session=current_session,
        )
    )
    app.include_router(
        file_api.build_router(
            settings=settings,
            repository=repository,
            storage=storage,
            current_session=current_session,
        )
    )

    return app


app = create_app()
