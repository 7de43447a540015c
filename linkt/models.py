"""
Pydantic models for request/response validation.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serializes snake_case fields as the camelCase keys clients expect."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileShareResponse(CamelModel):
    success: bool = True
    share_code: str
    file_name: str
    size: int
    mime_type: str
    expires_at: str
    download_url: str


class TextShareResponse(CamelModel):
    success: bool = True
    share_code: str
    text_length: int
    language: str
    expires_at: str
    access_url: str


class TextContentResponse(CamelModel):
    """Response model for a fetched text share."""
    success: bool = True
    content: str
    language: str
    created_at: str
    expires_at: str


class CleanupResponse(CamelModel):
    success: bool = True
    message: str
    deleted_files: int
    total_files: int
    timestamp: str
