from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from app.schemas.api import ChatStreamRequest, ParsedObject
from app.services import svc
from app.services.streaming.events import UpstreamGenerationError
from app.services.tutor.manager import TutorChatbot
import logging

logger = logging.getLogger("services")
router = APIRouter()

class SingletonBot:
    def __init__(self) -> None:
        self.bot: TutorChatbot | None = None  # will be set on first use

tutor_bot = SingletonBot()

def get_bot() -> TutorChatbot:
    """FastAPI dependency to provide the singleton tutor."""
    if tutor_bot.bot is None:
        tutor_bot.bot = TutorChatbot(logger)
    return tutor_bot.bot


@router.post("/chat", response_model=ParsedObject)
def chat(req: ChatStreamRequest, bot: TutorChatbot = Depends(get_bot)):
    try:
        return svc.chat(bot, req)
    except UpstreamGenerationError as e:
        logger.error(f"Reply generation failed for session {req.session_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))

@router.post("/chat/stream")
async def chat_stream(req: ChatStreamRequest, bot: TutorChatbot = Depends(get_bot)):
    logger.info(f"Starting reply stream for session {req.session_id}")
    encoder = svc.stream_chat(bot, req, logger)

    return StreamingResponse(
        encoder,
        media_type="application/json",
        headers={
            'Cache-Control': 'no-cache',
            'Connection': 'keep-alive',
            'X-Accel-Buffering': 'no'  # Disable buffering for nginx
        }
    )
