from __future__ import annotations

from fastapi import APIRouter, Depends, FastAPI
from fastapi.responses import JSONResponse
from loguru import logger

from .config import get_settings
from .errors import NotFoundError, UnauthorizedError
from .logging_config import setup_logging
from .models import ChatRequest, ChatResponse, ConversationDTO, MessageDTO
from .service import ChatService

app = FastAPI(title="Commerce Chat API", version="1.0.0")

router = APIRouter(prefix="/api")


def get_chat_service() -> ChatService:
    return ChatService.instance()


def _error(status_code: int, detail: str) -> JSONResponse:
    body = ChatResponse(response=detail).model_dump(by_alias=True, mode="json")
    return JSONResponse(status_code=status_code, content=body)


@app.on_event("startup")
async def on_startup() -> None:
    setup_logging(get_settings().log_level)
    # Initialize the singleton service (and import seed data if configured)
    ChatService.instance()


@app.get("/healthz")
async def healthz() -> dict:
    return {"status": "ok"}


@router.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, service: ChatService = Depends(get_chat_service)):
    if req.user_id is None or req.message is None or not req.message.strip():
        return _error(400, "userId and a non-empty message are required")

    try:
        turn = await service.handle_message(req.user_id, req.message, req.conversation_id)
    except (NotFoundError, UnauthorizedError) as e:
        # Ownership failures look like missing sessions to the caller
        return _error(404, str(e))
    except Exception as e:
        logger.exception(f"Error processing chat message: {e}")
        return _error(500, f"An internal server error occurred: {e}")

    return ChatResponse(
        conversation_id=turn.session_id,
        message_id=turn.message_id,
        response=turn.content,
        timestamp=turn.timestamp,
        sender=turn.sender.value,
    )


@router.get("/conversations/{session_id}", response_model=ConversationDTO)
async def get_conversation(session_id: int, service: ChatService = Depends(get_chat_service)):
    try:
        conversation = service.get_history(session_id)
    except NotFoundError as e:
        return _error(404, str(e))
    except Exception as e:
        logger.exception(f"Error retrieving conversation {session_id}: {e}")
        return _error(500, "Error retrieving conversation history.")

    session = conversation.session
    return ConversationDTO(
        id=session.id,
        user_id=session.user_id,
        start_time=session.start_time,
        end_time=session.end_time,
        status=session.status.value,
        title=session.title,
        messages=[
            MessageDTO(
                id=m.id,
                sequence_number=m.sequence_number,
                sender=m.sender.value,
                content=m.content,
                timestamp=m.timestamp,
                metadata=m.metadata,
            )
            for m in conversation.messages
        ],
    )


app.include_router(router)
