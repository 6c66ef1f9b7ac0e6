import logging

from fastapi import APIRouter, Depends, File, HTTPException, Path, UploadFile
from fastapi.responses import FileResponse

from bucketstore.config import Settings
from bucketstore.dependencies import AuthSession, page_window
from bucketstore.models import FileListResponse, FileRecord, FileSummary, MessageResponse
from bucketstore.repository import Repository
from bucketstore.storage import FileTooLargeError, LocalBucketStorage, is_safe_filename

logger = logging.getLogger(__name__)


def build_router(
    *,
    settings: Settings,
    repository: Repository,
    storage: LocalBucketStorage,
    current_session,
) -> APIRouter:
    router = APIRouter(prefix="/file", tags=["files"])

    def check_upload(upload: UploadFile) -> str:
        if not upload.filename or not is_safe_filename(upload.filename):
            raise HTTPException(
                status_code=400,
                detail="invalid file name: avoid path separators and special characters",
            )
        mimetype = upload.content_type or "application/octet-stream"
        if mimetype not in settings.allowed_mime_types:
            allowed = ", ".join(settings.allowed_mime_types)
            raise HTTPException(status_code=400, detail=f"file type not allowed, expected one of: {allowed}")
        return mimetype

    def store(upload: UploadFile, *, owner_id: str, bucket_name: str) -> tuple[str, int]:
        try:
            return storage.save_file(
                owner_id=owner_id,
                bucket_name=bucket_name,
                filename=upload.filename,
                source=upload,
                max_size_bytes=settings.max_upload_size_bytes,
            )
        except FileTooLargeError as exc:
            raise HTTPException(status_code=413, detail=str(exc)) from exc

    @router.post("/{bucket_id}/files", response_model=FileRecord, status_code=201)
    def upload_file(
        bucket_id: str,
        file: UploadFile = File(...),
        session: AuthSession = Depends(current_session),
    ):
        mimetype = check_upload(file)

        bucket = repository.get_bucket(bucket_id, session.user_id)
        if not bucket:
            raise HTTPException(status_code=404, detail="bucket not found")
        if repository.find_file_by_name(bucket_id, file.filename):
            raise HTTPException(
                status_code=409,
                detail="file already exists in the bucket, update it instead",
            )

        storage_path, size = store(file, owner_id=session.user_id, bucket_name=bucket["bucket_name"])
        try:
            record = repository.create_file(
                filename=file.filename,
                storage_path=storage_path,
                bucket_id=bucket_id,
                owner_id=session.user_id,
                mimetype=mimetype,
                size=size,
            )
        except Exception:
            storage.delete_file(storage_path)
            raise

        logger.info("stored %s (%d bytes) in bucket %s", record["file_id"], size, bucket_id)
        return FileRecord(**record)

    @router.get("/list/{page}/{page_size}", response_model=FileListResponse)
    def list_files(
        page: int = Path(ge=1),
        page_size: int = Path(ge=1),
        session: AuthSession = Depends(current_session),
    ):
        limit, offset = page_window(page, page_size, settings.max_page_size)
        rows = repository.list_files_for_owner(session.user_id, limit=limit, offset=offset)
        return FileListResponse(files=[FileSummary(**row) for row in rows], page=page, page_size=page_size)

    @router.get("/{file_id}")
    def download_file(file_id: str, session: AuthSession = Depends(current_session)):
        file_row = repository.get_file(file_id, session.user_id)
        if not file_row:
            raise HTTPException(status_code=404, detail="file not found")

        file_path = storage.path_for(file_row["storage_path"])
        if not file_path.exists():
            logger.warning("file %s has no content at %s", file_id, file_path)
            raise HTTPException(status_code=404, detail="file content missing")

        return FileResponse(path=file_path, filename=file_row["filename"], media_type=file_row["mimetype"])

    @router.put("/update/{bucket_id}/{file_id}", response_model=MessageResponse)
    def update_file(
        bucket_id: str,
        file_id: str,
        file: UploadFile = File(...),
        session: AuthSession = Depends(current_session),
    ):
        bucket = repository.get_bucket(bucket_id, session.user_id)
        if not bucket:
            raise HTTPException(status_code=404, detail="bucket not found")
        existing = repository.get_file_in_bucket(file_id=file_id, bucket_id=bucket_id, owner_id=session.user_id)
        if not existing:
            raise HTTPException(status_code=404, detail="file not found")

        mimetype = check_upload(file)
        clash = repository.find_file_by_name(bucket_id, file.filename)
        if clash and clash["file_id"] != file_id:
            raise HTTPException(status_code=409, detail="another file in the bucket already has this name")

        storage_path, size = store(file, owner_id=session.user_id, bucket_name=bucket["bucket_name"])
        repository.update_file(
            file_id=file_id,
            filename=file.filename,
            storage_path=storage_path,
            mimetype=mimetype,
            size=size,
        )
        if existing["storage_path"] != storage_path:
            storage.delete_file(existing["storage_path"])

        logger.info("replaced content of %s in bucket %s", file_id, bucket_id)
        return MessageResponse(message="file updated successfully")

    @router.delete("/delete/{bucket_id}/{file_id}", response_model=MessageResponse)
    def delete_file(bucket_id: str, file_id: str, session: AuthSession = Depends(current_session)):
        existing = repository.get_file_in_bucket(file_id=file_id, bucket_id=bucket_id, owner_id=session.user_id)
        if not existing:
            raise HTTPException(status_code=404, detail="file not found")

        repository.delete_file(file_id)
        storage.delete_file(existing["storage_path"])

        logger.info("deleted %s from bucket %s", file_id, bucket_id)
        return MessageResponse(message="file deleted successfully")

    return router
