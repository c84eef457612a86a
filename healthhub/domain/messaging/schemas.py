"""Messaging domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ThreadCreate(BaseModel):
    """Schema for opening a conversation"""

    title: Optional[str] = None
    thread_type: str = "direct"
    participant_ids: list[str] = []
    order_type: Optional[str] = None
    order_id: Optional[str] = None


class FileUpload(BaseModel):
    name: str = "file"
    type: Optional[str] = None
    size: Optional[int] = None
    base64: Optional[str] = None
    duration: Optional[float] = None


class MessageCreate(BaseModel):
    content: Optional[str] = None
    message_type: Optional[str] = None
    files: list[FileUpload] = []


class AttachmentResponse(BaseModel):
    id: str
    file_name: str
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    storage_path: str
    duration: Optional[float] = None
    url: Optional[str] = None

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    id: str
    thread_id: str
    sender_id: str
    content: Optional[str] = None
    message_type: str
    created_at: Optional[datetime] = None
    attachments: list[AttachmentResponse] = []

    class Config:
        from_attributes = True


class ThreadResponse(BaseModel):
    id: str
    title: Optional[str] = None
    thread_type: str
    order_type: Optional[str] = None
    order_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    member_ids: list[str] = []
