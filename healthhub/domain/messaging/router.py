"""Messaging router - FastAPI endpoints for chat threads"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from .schemas import MessageCreate, ThreadCreate, ThreadResponse
from .service import MessagingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/threads", tags=["Messaging"])


def get_messaging_service(db: Session = Depends(get_db)) -> MessagingService:
    """Dependency injection for MessagingService"""
    return MessagingService(db)


def thread_response(thread) -> ThreadResponse:
    return ThreadResponse(
        id=thread.id,
        title=thread.title,
        thread_type=thread.thread_type,
        order_type=thread.order_type,
        order_id=thread.order_id,
        created_by=thread.created_by,
        created_at=thread.created_at,
        updated_at=thread.updated_at,
        member_ids=[m.user_id for m in thread.members],
    )


@router.get("", response_model=list[ThreadResponse])
async def list_threads(
    current_user: Profile = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Threads the caller belongs to, most recently active first"""
    return [thread_response(t) for t in service.list_threads(current_user)]


@router.post("", response_model=ThreadResponse, status_code=201)
async def create_thread(
    data: ThreadCreate,
    current_user: Profile = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return thread_response(service.create_thread(data, current_user))


@router.get("/{thread_id}/messages")
async def list_messages(
    thread_id: str,
    current_user: Profile = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    messages = service.list_messages(thread_id, current_user)
    return {
        "threadId": thread_id,
        "messages": messages,
    }


@router.post("/{thread_id}/messages")
async def send_message(
    thread_id: str,
    data: MessageCreate,
    current_user: Profile = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Send text and/or base64 encoded files"""
    return service.send_message(thread_id, data, current_user)


@router.delete("/{thread_id}/messages/{message_id}")
async def delete_message(
    thread_id: str,
    message_id: str,
    current_user: Profile = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.delete_message(thread_id, message_id, current_user)
