"""Messaging service - Threads, messages and attachments"""

import base64
import binascii
import logging
import time

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Profile
from ...models_messaging import ChatAttachment, ChatMessage, ChatThread
from ...security_utils import sanitize_text
from ...shared.clock import utcnow
from ...utils import storage
from .repository import MessagingRepository
from .schemas import FileUpload, MessageCreate, MessageResponse, ThreadCreate

logger = logging.getLogger(__name__)

VOICE_PLACEHOLDER = "🎙️ Voice message"
ATTACHMENT_URL_MINUTES = 60


def derive_message_type(files: list[FileUpload], is_voice: bool) -> str:
    """Only images get their own type, everything else is a file"""
    if not files or is_voice:
        return "file" if is_voice else "text"
    first_type = files[0].type or ""
    return "image" if first_type.startswith("image/") else "file"


class MessagingService:
    """Service layer for messaging business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = MessagingRepository()

    def _thread_or_404(self, thread_id: str) -> ChatThread:
        thread = self.repo.get_thread(self.db, thread_id)
        if not thread:
            raise HTTPException(status_code=404, detail="Thread not found")
        return thread

    def _ensure_member(self, thread_id: str, user: Profile):
        if not self.repo.is_member(self.db, thread_id, user.id):
            self.repo.add_member(self.db, thread_id, user.id)
            self.db.flush()

    # ========================================================================
    # THREADS
    # ========================================================================

    def create_thread(self, data: ThreadCreate, user: Profile) -> ChatThread:
        participant_ids = [pid for pid in dict.fromkeys(data.participant_ids) if pid != user.id]
        if participant_ids:
            found = {
                row.id for row in self.db.query(Profile.id).filter(Profile.id.in_(participant_ids)).all()
            }
            missing = [pid for pid in participant_ids if pid not in found]
            if missing:
                raise HTTPException(status_code=400, detail=f"Unknown participant: {missing[0]}")

        thread = ChatThread(
            title=sanitize_text(data.title),
            thread_type=data.thread_type or "direct",
            order_type=data.order_type,
            order_id=data.order_id,
            created_by=user.id,
        )
        self.db.add(thread)
        self.db.flush()

        self.repo.add_member(self.db, thread.id, user.id, role="owner")
        for participant_id in participant_ids:
            self.repo.add_member(self.db, thread.id, participant_id)

        self.db.commit()
        self.db.refresh(thread)
        logger.info(f"💬 Thread {thread.id} created by {user.id} with {len(participant_ids)} participant(s)")
        return thread

    def list_threads(self, user: Profile) -> list[ChatThread]:
        return self.repo.list_threads_for_user(self.db, user.id)

    # ========================================================================
    # MESSAGES
    # ========================================================================

    def list_messages(self, thread_id: str, user: Profile) -> list[MessageResponse]:
        """Messages of a thread, the caller joins the thread on first read"""
        self._thread_or_404(thread_id)
        self._ensure_member(thread_id, user)
        self.db.commit()
        return [self._with_download_urls(m) for m in self.repo.list_messages(self.db, thread_id)]

    @staticmethod
    def _with_download_urls(message: ChatMessage) -> MessageResponse:
        """Attachment storage keys become short-lived presigned URLs"""
        response = MessageResponse.model_validate(message)
        for attachment in response.attachments:
            attachment.url = storage.generate_presigned_url(
                attachment.storage_path, expiration_minutes=ATTACHMENT_URL_MINUTES
            )
        return response

    def send_message(self, thread_id: str, data: MessageCreate, user: Profile) -> dict:
        thread = self._thread_or_404(thread_id)

        content = sanitize_text(data.content) or ""
        files = data.files or []
        if not content and not files:
            raise HTTPException(status_code=400, detail="Content or file required")

        is_voice = data.message_type == "audio" or (
            len(files) == 1 and (files[0].type or "").startswith("audio/")
        )
        self._ensure_member(thread_id, user)

        message = ChatMessage(
            thread_id=thread_id,
            sender_id=user.id,
            content=content or (VOICE_PLACEHOLDER if is_voice else (files[0].name or "File")),
            message_type=derive_message_type(files, is_voice),
        )
        self.db.add(message)
        self.db.flush()

        stored = 0
        for upload in files:
            if self._store_attachment(thread_id, message, upload):
                stored += 1

        thread.updated_at = utcnow()
        self.db.commit()
        logger.info(f"💬 Message {message.id} sent to thread {thread_id} ({stored} attachment(s))")
        return {"success": True, "messageId": message.id, "attachments": stored}

    def _store_attachment(self, thread_id: str, message: ChatMessage, upload: FileUpload) -> bool:
        """Upload one file, oversized or empty files are skipped"""
        if upload.size and upload.size > storage.MAX_ATTACHMENT_SIZE_BYTES:
            logger.warning(f"⚠️ Skipping {upload.name}: {upload.size} bytes exceeds limit")
            return False
        if not upload.base64:
            return False
        try:
            content = base64.b64decode(upload.base64, validate=True)
        except (binascii.Error, ValueError):
            logger.warning(f"⚠️ Skipping {upload.name}: invalid base64 payload")
            return False
        if len(content) > storage.MAX_ATTACHMENT_SIZE_BYTES:
            return False

        mime_type = upload.type or "application/octet-stream"
        key = storage.attachment_key(thread_id, message.id, upload.name, int(time.time() * 1000))
        if not storage.upload_attachment(content, key, mime_type):
            return False

        self.db.add(
            ChatAttachment(
                message_id=message.id,
                file_name=upload.name,
                file_type=mime_type,
                file_size=upload.size or len(content),
                storage_path=key,
                duration=upload.duration,
            )
        )
        return True

    def delete_message(self, thread_id: str, message_id: str, user: Profile) -> dict:
        """Soft delete, only the sender may remove a message"""
        message = self.repo.get_message(self.db, thread_id, message_id)
        if not message or message.is_deleted:
            raise HTTPException(status_code=404, detail="Message not found")
        if message.sender_id != user.id:
            raise HTTPException(status_code=403, detail="You can only delete your own messages")

        message.is_deleted = True
        message.deleted_at = utcnow()
        self.db.commit()
        return {"success": True}
