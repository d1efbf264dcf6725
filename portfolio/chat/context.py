"""
Chat context for project Q&A

No retrieval or chunking: every request carries the project's full markdown
in the system prompt and its first few images in the first user turn.
"""
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Literal

import anthropic

from portfolio.chat.images import EncodedImage, ImageFetcher
from portfolio.projects.markdown import extract_table_of_contents, fits_in_context_window
from portfolio.projects.models import Project
from portfolio.shared.errors import LLMUnavailable

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_LIMIT = 5

SYSTEM_PROMPT = """You are an AI assistant helping visitors understand the portfolio project "{title}".

The full project documentation, in markdown:

{markdown}

Sections: {sections}

The project includes {image_count} image(s) such as charts and figures; they are attached to the first user message.

Answer questions about the project's methodology, findings and implementation. Explain figures when asked, reference the relevant sections of the documentation, and keep explanations accessible. Stay under 300 words unless the visitor asks for more detail. If the documentation does not cover something, say so."""


@dataclass(frozen=True)
class ChatTurn:
    role: Literal["user", "assistant"]
    content: str


class ChatContextBuilder:
    def __init__(self, fetcher: ImageFetcher, image_limit: int = DEFAULT_IMAGE_LIMIT):
        self.fetcher = fetcher
        self.image_limit = image_limit

    async def build(self, project: Project, history: list[ChatTurn]) -> dict:
        """Return `system` and `messages` for one model request."""
        urls = list(project.image_urls or [])[: self.image_limit]
        images = await self.fetcher.fetch_all(urls)
        markdown = project.markdown_content or ""

        if not fits_in_context_window(markdown, len(images)):
            logger.warning(f"Chat context for {project.slug} is close to the model's context limit")

        return {
            "system": SYSTEM_PROMPT.format(
                title=project.title,
                markdown=markdown,
                sections=outline(markdown),
                image_count=len(images),
            ),
            "messages": build_messages(history, images),
        }


def outline(markdown: str) -> str:
    headings = [entry["text"] for entry in extract_table_of_contents(markdown) if entry["level"] <= 2]
    return "; ".join(headings) or "(none)"


def build_messages(history: list[ChatTurn], images: list[EncodedImage]) -> list[dict]:
    messages = [{"role": turn.role, "content": turn.content} for turn in history]
    if messages and images:
        first = messages[0]
        first["content"] = [image.to_content_block() for image in images] + [
            {"type": "text", "text": first["content"]}
        ]
    return messages


class ChatService:
    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        builder: ChatContextBuilder,
        model: str,
        max_tokens: int = 4096,
    ):
        self.client = client
        self.builder = builder
        self.model = model
        self.max_tokens = max_tokens

    async def stream_reply(self, project: Project, history: list[ChatTurn]) -> AsyncIterator[str]:
        """Yield text deltas; any model failure surfaces as LLMUnavailable."""
        request = await self.builder.build(project, history)
        try:
            async with self.client.messages.stream(
                model=self.model,
                max_tokens=self.max_tokens,
                **request,
            ) as stream:
                async for text in stream.text_stream:
                    yield text
        except anthropic.APIError as e:
            logger.error(f"Chat completion for {project.slug} failed: {e}")
            raise LLMUnavailable() from e
