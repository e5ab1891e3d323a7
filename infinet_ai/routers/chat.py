import base64
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from infinet_ai.logging_config import get_logger
from infinet_ai.schemas.chat import ChatRequest, ChatResponse, HistoryMessage, HistoryResponse
from infinet_ai.services import replies
from infinet_ai.services.conversation import Channel, InboundMessage, MediaPart, ReplyStatus
from infinet_ai.services.intent_service import detect_booking_intent
from infinet_ai.services.runtime import Runtime, get_runtime
from infinet_ai.services.session_store import ConversationTurn, session_key

logger = get_logger("chat_router")

router = APIRouter(prefix="/api/ai/chat", tags=["chat"])

STATUS_CODES = {
    ReplyStatus.OK: status.HTTP_200_OK,
    ReplyStatus.REJECTED: status.HTTP_200_OK,
    ReplyStatus.QUOTA_EXHAUSTED: status.HTTP_429_TOO_MANY_REQUESTS,
    ReplyStatus.LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ReplyStatus.TRANSIENT: status.HTTP_503_SERVICE_UNAVAILABLE,
    ReplyStatus.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ReplyStatus.FATAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def data_url(part: MediaPart) -> str:
    encoded = base64.b64encode(part.data).decode("ascii")
    return f"data:{part.mime_type};base64,{encoded}"


def client_address(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.client.host if request.client else None


async def _seed_history(runtime: Runtime, key: str, request: ChatRequest) -> None:
    """Adopt client-held history when the server has none for this session."""
    if not request.conversationHistory or await runtime.store.exists(key):
        return
    for item in request.conversationHistory[-runtime.settings.history_turns :]:
        if item.role in ("user", "assistant") and item.content:
            await runtime.store.append(key, ConversationTurn(role=item.role, content=item.content))


@router.post("", response_model=ChatResponse, response_model_exclude_none=True)
async def chat(
    request: ChatRequest,
    response: Response,
    http_request: Request,
    runtime: Runtime = Depends(get_runtime),
):
    """Answer a message from the website chat widget."""
    message = (request.message or "").strip()
    if not message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")

    session_id = request.sessionId or uuid4().hex
    await _seed_history(runtime, session_key(Channel.WEB.value, session_id), request)

    inbound = InboundMessage(sender_id=session_id, text=message, client_address=client_address(http_request))
    reply = await runtime.dispatcher.handle(inbound, Channel.WEB)
    response.status_code = STATUS_CODES.get(reply.status, status.HTTP_200_OK)

    payload = ChatResponse(
        response=reply.text or "",
        sessionId=session_id,
        bookingData=detect_booking_intent(message) if reply.ok else None,
        error=None if reply.ok else reply.status.value,
        timestamp=_now(),
    )
    if reply.image is not None:
        payload.image = data_url(reply.image)
    return payload


@router.get("/history", response_model=HistoryResponse)
async def chat_history(
    session_id: str | None = Query(default=None, alias="sessionId"),
    limit: int = Query(default=50, ge=1, le=500),
    reset: bool = False,
    runtime: Runtime = Depends(get_runtime),
):
    """Stored turns for a widget session.

    ``reset`` starts a fresh session: the old turns stay stored, the widget gets
    a new ``sessionId`` and the welcome message.
    """
    now = _now()
    if reset:
        fresh_id = uuid4().hex
        logger.info("History reset", extra={"context": {"previous_session_id": session_id, "session_id": fresh_id}})
        welcome = replies.reply(replies.WELCOME, business=runtime.settings.business_name)
        return HistoryResponse(
            sessionId=fresh_id,
            messages=[HistoryMessage(id=f"msg-{int(now.timestamp() * 1000)}-welcome", sender="assistant", content=welcome, timestamp=now)],
            timestamp=now,
        )

    if not session_id:
        return HistoryResponse(sessionId=None, messages=[], timestamp=now)

    turns = await runtime.store.get(session_key(Channel.WEB.value, session_id))
    offset = max(len(turns) - limit, 0)
    turns = turns[offset:]
    messages = [
        HistoryMessage(
            id=f"msg-{offset + index}",
            sender=turn.role,
            content=turn.content,
            timestamp=turn.timestamp,
        )
        for index, turn in enumerate(turns)
    ]
    logger.debug("History fetched", extra={"context": {"session_id": session_id, "count": len(messages)}})
    return HistoryResponse(sessionId=session_id, messages=messages, timestamp=now)
