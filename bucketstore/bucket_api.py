import logging

from fastapi import APIRouter, Depends, HTTPException, Path

from bucketstore.config import Settings
from bucketstore.dependencies import AuthSession, page_window
from bucketstore.models import (
    BucketDetail,
    BucketFile,
    BucketListResponse,
    BucketNameRequest,
    BucketRecord,
    BucketSummary,
    MessageResponse,
)
from bucketstore.repository import Repository
from bucketstore.storage import LocalBucketStorage, is_safe_bucket_name

logger = logging.getLogger(__name__)

INVALID_BUCKET_NAME = (
    "invalid bucket name: only alphanumeric characters, dashes, underscores and dots are allowed"
)


def build_router(
    *,
    settings: Settings,
    repository: Repository,
    storage: LocalBucketStorage,
    current_session,
) -> APIRouter:
    router = APIRouter(prefix="/bucket", tags=["buckets"])

    @router.post("/add", response_model=BucketRecord, status_code=201)
    def add_bucket(payload: BucketNameRequest, session: AuthSession = Depends(current_session)):
        bucket_name = payload.bucket_name
        if not is_safe_bucket_name(bucket_name):
            raise HTTPException(status_code=400, detail=INVALID_BUCKET_NAME)
        if repository.find_bucket_by_name(session.user_id, bucket_name):
            raise HTTPException(status_code=409, detail="bucket with this name already exists")

        record = repository.create_bucket(owner_id=session.user_id, bucket_name=bucket_name)
        try:
            storage.create_bucket(session.user_id, bucket_name)
        except OSError:
            repository.delete_bucket(record["bucket_id"])
            raise

        logger.info("created bucket %s (%s) for user %s", bucket_name, record["bucket_id"], session.user_id)
        return BucketRecord(**record)

    @router.get("/list/{page}/{page_size}", response_model=BucketListResponse)
    def list_buckets(
        page: int = Path(ge=1),
        page_size: int = Path(ge=1),
        session: AuthSession = Depends(current_session),
    ):
        limit, offset = page_window(page, page_size, settings.max_page_size)
        rows = repository.list_buckets_for_owner(session.user_id, limit=limit, offset=offset)
        return BucketListResponse(
            buckets=[BucketSummary(**row) for row in rows],
            page=page,
            page_size=page_size,
        )

    @router.get("/{bucket_id}", response_model=BucketDetail)
    def get_bucket(bucket_id: str, session: AuthSession = Depends(current_session)):
        bucket = repository.get_bucket(bucket_id, session.user_id)
        if not bucket:
            raise HTTPException(status_code=404, detail="bucket not found")

        files = [BucketFile(**row) for row in repository.list_bucket_files(bucket_id)]
        return BucketDetail(**bucket, files=files)

    @router.put("/update/{bucket_id}", response_model=MessageResponse)
    def rename_bucket(
        bucket_id: str,
        payload: BucketNameRequest,
        session: AuthSession = Depends(current_session),
    ):
        new_name = payload.bucket_name
        if not is_safe_bucket_name(new_name):
            raise HTTPException(status_code=400, detail=INVALID_BUCKET_NAME)

        bucket = repository.get_bucket(bucket_id, session.user_id)
        if not bucket:
            raise HTTPException(
                status_code=406,
                detail="bucket not found or you do not have permission to update it",
            )
        if repository.find_bucket_by_name(session.user_id, new_name):
            raise HTTPException(status_code=409, detail="bucket with this name already exists")

        old_name = bucket["bucket_name"]
        try:
            storage.rename_bucket(session.user_id, old_name, new_name)
        except FileExistsError as exc:
            raise HTTPException(status_code=409, detail="bucket with this name already exists") from exc

        try:
            repository.rename_bucket(
                bucket_id=bucket_id,
                bucket_name=new_name,
                old_prefix=storage.bucket_prefix(session.user_id, old_name),
                new_prefix=storage.bucket_prefix(session.user_id, new_name),
            )
        except Exception:
            logger.exception("rename of bucket %s failed in the database, restoring directory", bucket_id)
            storage.rename_bucket(session.user_id, new_name, old_name)
            raise

        logger.info("renamed bucket %s from %s to %s", bucket_id, old_name, new_name)
        return MessageResponse(message="bucket name updated successfully")

    @router.delete("/delete/{bucket_id}", response_model=MessageResponse)
    def delete_bucket(bucket_id: str, session: AuthSession = Depends(current_session)):
        bucket = repository.get_bucket(bucket_id, session.user_id)
        if not bucket:
            raise HTTPException(
                status_code=404,
                detail="bucket does not exist or you do not have permission to delete it",
            )

        removed_files = repository.delete_bucket(bucket_id)
        storage.delete_bucket(session.user_id, bucket["bucket_name"])

        logger.info("deleted bucket %s with %d files", bucket_id, removed_files)
        return MessageResponse(message="bucket deleted successfully")

    return router
