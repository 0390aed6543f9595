"""Support chat routes — REST for history and posting, a websocket for live delivery."""

import asyncio

import structlog
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.api.auth import Principal, current_user, socket_user
from storefront.api.schemas import (
    ChatHistoryResponse,
    ChatMessageSchema,
    ChatSessionIdResponse,
    OpenChatRequest,
    PostChatMessageRequest,
    StatusResponse,
)
from storefront.chat.hub import broadcast_message, get_hub
from storefront.chat.session import ChatSession, CloseChatSession, OpenChatSession, PostChatMessage
from storefront.domain import storefront

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def _session_for(session_id: str, principal: Principal) -> ChatSession:
    session = current_domain.repository_for(ChatSession).get(session_id)
    if not session.can_access(principal.user_id, principal.role):
        raise HTTPException(status_code=403, detail="Not a participant of this chat session")
    return session


@router.post("/sessions", status_code=201, response_model=ChatSessionIdResponse)
async def open_session(body: OpenChatRequest, principal: Principal = Depends(current_user)) -> ChatSessionIdResponse:
    session_id = current_domain.process(
        OpenChatSession(user_id=principal.user_id, subject=body.subject), asynchronous=False
    )
    return ChatSessionIdResponse(session_id=session_id)


@router.get("/sessions/{session_id}/messages", response_model=ChatHistoryResponse)
async def get_history(
    session_id: str, after: int = 0, principal: Principal = Depends(current_user)
) -> ChatHistoryResponse:
    session = _session_for(session_id, principal)
    return ChatHistoryResponse(
        session_id=str(session.id),
        status=session.status,
        messages=[ChatMessageSchema(**m) for m in session.history(after_sequence=after)],
    )


@router.post("/sessions/{session_id}/messages", status_code=201, response_model=ChatMessageSchema)
async def post_message(
    session_id: str, body: PostChatMessageRequest, principal: Principal = Depends(current_user)
) -> ChatMessageSchema:
    _session_for(session_id, principal)
    message = current_domain.process(
        PostChatMessage(
            session_id=session_id,
            sender_id=principal.user_id,
            sender_role=principal.role,
            body=body.body,
        ),
        asynchronous=False,
    )
    broadcast_message(session_id, message)
    return ChatMessageSchema(**message)


@router.post("/sessions/{session_id}/close", response_model=StatusResponse)
async def close_session(session_id: str, principal: Principal = Depends(current_user)) -> StatusResponse:
    _session_for(session_id, principal)
    current_domain.process(CloseChatSession(session_id=session_id), asynchronous=False)
    return StatusResponse()


@router.websocket("/sessions/{session_id}/ws")
async def chat_socket(websocket: WebSocket, session_id: str):
    """Live chat: text frames in are posted, every posted message is pushed out."""
    principal = socket_user(websocket)
    if principal is None:
        await websocket.close(code=4401)
        return

    with storefront.domain_context():
        try:
            session = current_domain.repository_for(ChatSession).get(session_id)
        except ObjectNotFoundError:
            await websocket.close(code=4404)
            return
        if not session.can_access(principal.user_id, principal.role):
            await websocket.close(code=4403)
            return

        # Subscribed before accepting, so nothing posted after the handshake is missed
        hub = get_hub()
        conn_id, queue = hub.subscribe(session_id)

        async def pump():
            while True:
                message = await queue.get()
                await websocket.send_json(message)

        sender = None
        try:
            await websocket.accept()
            sender = asyncio.create_task(pump())
            while True:
                body = await websocket.receive_text()
                try:
                    message = current_domain.process(
                        PostChatMessage(
                            session_id=session_id,
                            sender_id=principal.user_id,
                            sender_role=principal.role,
                            body=body,
                        ),
                        asynchronous=False,
                    )
                except ValidationError as exc:
                    await websocket.send_json({"error": exc.messages})
                    continue
                broadcast_message(session_id, message)
        except WebSocketDisconnect:
            logger.debug("chat_socket_closed", session_id=session_id, user_id=principal.user_id)
        finally:
            if sender is not None:
                sender.cancel()
            hub.unsubscribe(session_id, conn_id)
