"""Messaging repository - Database operations for chat threads"""

from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models_messaging import ChatMessage, ChatThread, ChatThreadMember

MAX_MESSAGES = 200


class MessagingRepository:
    """Repository for chat database operations"""

    @staticmethod
    def get_thread(db: Session, thread_id: str) -> Optional[ChatThread]:
        return db.query(ChatThread).filter(ChatThread.id == thread_id).first()

    @staticmethod
    def list_threads_for_user(db: Session, user_id: str) -> list[ChatThread]:
        member_of = db.query(ChatThreadMember.thread_id).filter(ChatThreadMember.user_id == user_id)
        return (
            db.query(ChatThread)
            .options(selectinload(ChatThread.members))
            .filter(ChatThread.id.in_(member_of))
            .order_by(ChatThread.updated_at.desc())
            .all()
        )

    @staticmethod
    def is_member(db: Session, thread_id: str, user_id: str) -> bool:
        return (
            db.query(ChatThreadMember.id)
            .filter(ChatThreadMember.thread_id == thread_id, ChatThreadMember.user_id == user_id)
            .first()
            is not None
        )

    @staticmethod
    def add_member(db: Session, thread_id: str, user_id: str, role: str = "member") -> ChatThreadMember:
        member = ChatThreadMember(thread_id=thread_id, user_id=user_id, role=role)
        db.add(member)
        return member

    @staticmethod
    def list_messages(db: Session, thread_id: str, limit: int = MAX_MESSAGES) -> list[ChatMessage]:
        """Oldest first, deleted messages excluded"""
        return (
            db.query(ChatMessage)
            .options(selectinload(ChatMessage.attachments))
            .filter(ChatMessage.thread_id == thread_id, ChatMessage.is_deleted.is_(False))
            .order_by(ChatMessage.created_at.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_message(db: Session, thread_id: str, message_id: str) -> Optional[ChatMessage]:
        return (
            db.query(ChatMessage)
            .filter(ChatMessage.id == message_id, ChatMessage.thread_id == thread_id)
            .first()
        )
