import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from codedrop.auth import BearerTokenVerifier
from codedrop.codes import CodeGenerator
from codedrop.config import Settings, get_settings
from codedrop.errors import TransferError
from codedrop.logging_setup import configure_logging
from codedrop.models import CleanupResponse, DownloadRequest, DownloadResponse, UploadResponse
from codedrop.repository import TransferRepository
from codedrop.service import TransferService
from codedrop.storage import LocalBlobStore
from codedrop.sweeper import CleanupSweeper

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    repository = TransferRepository(settings.database_path, timeout=settings.database_timeout_seconds)
    storage = LocalBlobStore(settings.storage_dir, public_path=settings.public_blob_path)
    service = TransferService(
        repository,
        storage,
        CodeGenerator(settings.code_length),
        ttl=timedelta(seconds=settings.transfer_ttl_seconds),
        max_upload_size=settings.max_upload_size_bytes,
        code_attempts=settings.code_attempts,
    )
    sweeper = CleanupSweeper(service, settings.sweep_interval_seconds)
    cleanup_auth = BearerTokenVerifier(settings.cleanup_token)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
        repository.init()
        storage.init()
        logger.info("%s starting (%s), database at %s", settings.app_name, settings.app_env, settings.database_path)
        if settings.sweep_interval_seconds > 0:
            sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.service = service
    app.state.sweeper = sweeper

    @app.get("/")
    def root() -> dict:
        return {"status": "ok", "service": settings.app_name}

    def error_response(status_code: int, message: str, code: str) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": {"code": code, "message": message}},
        )

    @app.exception_handler(TransferError)
    async def transfer_exception_handler(_: Request, exc: TransferError):
        return error_response(exc.status_code, exc.message, exc.code)

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
        code_map = {
            400: "bad_request",
            401: "unauthorized",
            403: "forbidden",
            404: "not_found",
            405: "method_not_allowed",
            410: "expired",
        }
        return error_response(exc.status_code, message, code_map.get(exc.status_code, "error"))

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "environment": settings.app_env}

    @app.post("/upload", response_model=UploadResponse)
    def upload(
        file: UploadFile | None = File(None),
        secret_word: str | None = Form(None, alias="secretWord"),
    ):
        data = None
        if file is not None:
            # One byte past the limit is enough to reject oversized uploads.
            data = file.file.read(settings.max_upload_size_bytes + 1)

        code = service.create_transfer(
            data,
            secret_word,
            filename=file.filename if file is not None else None,
            content_type=file.content_type if file is not None else None,
        )
        return UploadResponse(code=code, expires_in=settings.transfer_ttl_seconds)

    @app.post("/download", response_model=DownloadResponse)
    def download(payload: DownloadRequest, request: Request):
        locator = service.fetch_transfer(payload.code, payload.secret_word)
        file_url = locator.url
        if file_url.startswith("/"):
            file_url = str(request.base_url)[:-1] + file_url
        return DownloadResponse(file_url=file_url)

    @app.api_route("/cleanup", methods=["GET", "DELETE"], response_model=CleanupResponse)
    def cleanup(authorization: str | None = Header(None)):
        cleanup_auth.require(authorization)
        cleaned = sweeper.run_once()
        return CleanupResponse(message="Expired transfers cleaned up.", cleaned=cleaned)

    @app.get(settings.public_blob_path.rstrip("/") + "/{resource_kind}/{name}")
    def serve_blob(resource_kind: str, name: str):
        path = storage.open_blob(resource_kind, name)
        if path is None:
            raise HTTPException(status_code=404, detail="file not found")
        return FileResponse(path=path, filename=name)

    return app


configure_logging(get_settings().log_level, get_settings().json_logs)
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("codedrop.main:app", host="0.0.0.0", port=8000, log_level=get_settings().log_level.lower())
