from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    full_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=72)


class UserRecord(BaseModel):
    user_id: str
    full_name: str
    email: str
    created_at: datetime


class AuthResponse(BaseModel):
    user: UserRecord
    token: str
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    message: str


class BucketNameRequest(BaseModel):
    bucket_name: str = Field(min_length=1, max_length=255)


class BucketRecord(BaseModel):
    bucket_id: str
    bucket_name: str
    owner_id: str
    created_at: datetime


class BucketSummary(BaseModel):
    bucket_id: str
    bucket_name: str


class BucketFile(BaseModel):
    file_id: str
    filename: str


class BucketDetail(BucketRecord):
    files: list[BucketFile]


class BucketListResponse(BaseModel):
    buckets: list[BucketSummary]
    page: int
    page_size: int


class FileRecord(BaseModel):
    file_id: str
    filename: str
    bucket_id: str
    owner_id: str
    mimetype: str
    size: int
    uploaded_at: datetime
    updated_at: datetime


class FileSummary(BaseModel):
    file_id: str
    filename: str
    bucket_id: str
    bucket_name: str


class FileListResponse(BaseModel):
    files: list[FileSummary]
    page: int
    page_size: int
