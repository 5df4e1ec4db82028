from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TransferRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    secret: str
    blob_url: str
    resource_kind: str = "raw"
    created_at: datetime
    expires_at: datetime


class UploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str
    expires_in: int = Field(alias="expiresIn")


class DownloadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str | None = None
    secret_word: str | None = Field(default=None, alias="secretWord")


class DownloadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_url: str = Field(alias="fileUrl")


class CleanupResponse(BaseModel):
    message: str
    cleaned: int
