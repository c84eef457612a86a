from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .database import Base
from .models import generate_uuid
from .shared.clock import utcnow


class ChatThread(Base):
    __tablename__ = "chat_threads"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=True)
    thread_type = Column(String(30), default="direct", nullable=False)  # direct, group, order
    order_type = Column(String(50), nullable=True)  # prescription, lab_request, referral
    order_id = Column(String(36), nullable=True)
    created_by = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, index=True)

    members = relationship("ChatThreadMember", back_populates="thread", cascade="all, delete-orphan")
    messages = relationship("ChatMessage", back_populates="thread", cascade="all, delete-orphan")


class ChatThreadMember(Base):
    __tablename__ = "chat_thread_members"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    thread_id = Column(String(36), ForeignKey("chat_threads.id"), index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    role = Column(String(20), default="member", nullable=False)  # owner, member
    joined_at = Column(DateTime, default=utcnow)

    thread = relationship("ChatThread", back_populates="members")


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    thread_id = Column(String(36), ForeignKey("chat_threads.id"), index=True, nullable=False)
    sender_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    content = Column(Text, nullable=True)
    message_type = Column(String(20), default="text", nullable=False)  # text, image, file
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    thread = relationship("ChatThread", back_populates="messages")
    attachments = relationship("ChatAttachment", back_populates="message", cascade="all, delete-orphan")


class ChatAttachment(Base):
    __tablename__ = "chat_attachments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    message_id = Column(String(36), ForeignKey("chat_messages.id"), index=True, nullable=False)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)
    duration = Column(Float, nullable=True)  # seconds, voice notes
    storage_path = Column(String(500), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    message = relationship("ChatMessage", back_populates="attachments")
