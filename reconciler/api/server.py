from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict

import uvicorn
from fastapi import BackgroundTasks, FastAPI, File, Header, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from reconciler.config.settings import Settings
from reconciler.database.connection import close_pool, init_pool
from reconciler.exceptions import SignatureVerificationFailed
from reconciler.logging.logger import Log
from reconciler.services import Services, build_services
from reconciler.uploads.models import UploadedFile


class ApprovedCleanupRequest(BaseModel):
    document_ids: list[str] = Field(alias="documentIds", min_length=1)


def _services(request: Request) -> Services:
    return request.app.state.services


def _read_upload(file: UploadFile) -> UploadedFile:
    return UploadedFile(
        filename=file.filename or "",
        content=file.file.read(),
        content_type=file.content_type,
    )


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build the HTTP surface.

    When ``services`` is given the app uses them as-is and never touches the
    connection pool.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services is not None:
            app.state.services = services
            yield
            return
        Log.configure(settings.log_level)
        init_pool(settings)
        try:
            app.state.services = build_services(settings)
            Log.info("Reconciler API started", env=settings.app_env)
            yield
        finally:
            close_pool()
            Log.info("Reconciler API stopped")

    app = FastAPI(title="Document payment reconciler", lifespan=lifespan)
    if services is not None:
        app.state.services = services

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/webhooks/stripe")
    async def stripe_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        stripe_signature: str | None = Header(default=None),
    ) -> JSONResponse:
        payload = await request.body()
        svc = _services(request)
        try:
            verified = svc.verifier.verify(payload, stripe_signature)
        except SignatureVerificationFailed as exc:
            return JSONResponse(status_code=400, content={"error": str(exc)})

        try:
            result = await run_in_threadpool(svc.dispatcher.dispatch, verified)
        except Exception as exc:
            Log.error(f"Webhook processing failed: {exc}", event_type=verified.type, event_id=verified.id)
            return JSONResponse(status_code=400, content={"error": str(exc)})

        Log.debug("Webhook processed", event_type=result.event_type, changed=result.changed)
        # Runs after the response has been sent.
        for action in result.deferred:
            background_tasks.add_task(action)
        return JSONResponse(status_code=200, content={"received": True})

    @app.post("/documents/{document_id}/retry-upload")
    def retry_upload(document_id: str, request: Request, file: UploadFile = File(...)) -> JSONResponse:
        result = _services(request).recovery.retry_upload(document_id, _read_upload(file))
        body = {
            "success": result.success,
            "fileUrl": result.file_url,
            "error": result.error,
            "documentId": result.document_id,
        }
        return JSONResponse(status_code=200 if result.success else 400, content=body)

    @app.post("/documents/{document_id}/file")
    def receive_file(document_id: str, request: Request, file: UploadFile = File(...)) -> JSONResponse:
        result = _services(request).arrival.receive(document_id, _read_upload(file))
        body = {
            "success": result.success,
            "fileUrl": result.file_url,
            "error": result.error,
            "documentId": result.document_id,
            "needsRecovery": result.needs_recovery,
        }
        return JSONResponse(status_code=200 if result.success else 400, content=body)

    @app.get("/documents/missing-files")
    def missing_files(request: Request, user_id: str | None = None) -> JSONResponse:
        documents = _services(request).recovery.list_missing_file_documents(user_id)
        content = jsonable_encoder({"documents": [asdict(doc) for doc in documents]})
        return JSONResponse(content=content)

    @app.get("/sweeper/drafts")
    def review_drafts(request: Request) -> JSONResponse:
        review = _services(request).sweeper.review()
        return JSONResponse(content=review.to_dict())

    @app.post("/sweeper/drafts/cleanup")
    def cleanup_drafts(request: Request) -> JSONResponse:
        summary = _services(request).sweeper.sweep()
        return JSONResponse(content={"success": True, **summary.to_dict()})

    @app.post("/sweeper/drafts/approved-cleanup")
    def approved_cleanup(request: Request, body: ApprovedCleanupRequest) -> JSONResponse:
        summary = _services(request).sweeper.delete_approved(body.document_ids)
        return JSONResponse(content={"success": True, **summary.to_dict()})

    @app.post("/sweeper/sessions/sync")
    def sync_sessions(request: Request) -> JSONResponse:
        summary = _services(request).synchronizer.sync()
        return JSONResponse(content={"success": True, **summary.to_dict()})

    return app


def run() -> None:
    settings = Settings()
    Log.configure(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
