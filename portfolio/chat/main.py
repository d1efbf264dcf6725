"""
Project Chat API

Streams answers about a single published project as Server-Sent Events:

    data: {"text": "..."}      one per text delta
    data: [DONE]               normal end
    data: {"error": "..."}     terminal error, no [DONE] follows
"""
import json
import logging
from typing import Literal

import anthropic
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import Field
from starlette.concurrency import run_in_threadpool

from portfolio.chat.context import ChatContextBuilder, ChatService, ChatTurn
from portfolio.chat.images import ImageFetcher, get_image_fetcher
from portfolio.projects.main import get_project_store
from portfolio.projects.schemas import CamelModel
from portfolio.projects.store import ProjectStore
from portfolio.shared.config import Settings, get_settings
from portfolio.shared.errors import InvalidRequest, LLMUnavailable, ProjectNotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatMessage(CamelModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


class ChatRequest(CamelModel):
    project_id: str
    messages: list[ChatMessage] = Field(..., min_length=1)


def get_chat_client(settings: Settings = Depends(get_settings)) -> anthropic.AsyncAnthropic:
    if not settings.anthropic_api_key:
        logger.error("ANTHROPIC_API_KEY is not set; chat is disabled")
        raise LLMUnavailable()
    return anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)


def get_chat_service(
    client: anthropic.AsyncAnthropic = Depends(get_chat_client),
    fetcher: ImageFetcher = Depends(get_image_fetcher),
    settings: Settings = Depends(get_settings),
) -> ChatService:
    builder = ChatContextBuilder(fetcher, image_limit=settings.chat_image_limit)
    return ChatService(client, builder, model=settings.chat_model, max_tokens=settings.chat_max_tokens)


def sse_event(payload) -> str:
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}\n\n"


@router.post("")
async def chat(
    body: ChatRequest,
    store: ProjectStore = Depends(get_project_store),
    service: ChatService = Depends(get_chat_service),
):
    """Answer questions about one published project, streamed."""
    if body.messages[0].role != "user" or body.messages[-1].role != "user":
        raise InvalidRequest("Conversation must start and end with a user message")

    project = await run_in_threadpool(store.get, body.project_id)
    if project is None or not project.is_published:
        raise ProjectNotFound()

    history = [ChatTurn(role=m.role, content=m.content) for m in body.messages]

    async def event_stream():
        try:
            async for text in service.stream_reply(project, history):
                yield sse_event({"text": text})
        except LLMUnavailable as e:
            yield sse_event({"error": e.message})
            return
        yield sse_event("[DONE]")

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
