"""Chunked grammar check.

Unlike the text check, which sends the whole document in one request, the
grammar check splits long text with TextChunker and asks the model about
each chunk separately:

  chunk → prompt → {"errors": [...]} → locate each error in the chunk
        → shift to whole-text offsets → merge overlap duplicates

Chunks are processed sequentially. A chunk whose call or parse fails is
logged and skipped, so one bad answer costs one chunk, not the request.
"""

import time
from typing import Optional

from src.llm.client import ChatService
from src.llm.parser import extract_json_object
from src.prompts.text_check import (
    FORMAT_NOTES,
    GRAMMAR_CHECK_SYSTEM,
    GRAMMAR_CHECK_USER,
)
from src.schemas.api import GrammarCheckRequest
from src.schemas.chat import ChatCompletionRequest, ChatMessage
from src.schemas.llm_outputs import LLMGrammarError, LLMGrammarResponse
from src.schemas.results import ErrorContext, GrammarCheckResponse, GrammarError, TextChunk
from src.utils.logging import log, get_logger
from src.utils.text_chunker import TextChunker

MODULE = "grammar_check"
logger = get_logger()

CHUNK_SIZE = 2000
CHUNK_OVERLAP = 200
CONTEXT_CHARS = 20
GRAMMAR_TEMPERATURE = 0.3
GRAMMAR_MAX_TOKENS = 2000


def locate_error(chunk_text: str, error: LLMGrammarError) -> int:
    """Chunk-relative start of an error.

    The reported position is trusted when the error text is actually there;
    otherwise the text is searched for. Falls back to the (clamped) reported
    position, then 0.
    """
    position = error.position
    if position is not None and 0 <= position <= len(chunk_text):
        if not error.text or chunk_text.startswith(error.text, position):
            return position

    if error.text:
        found = chunk_text.find(error.text)
        if found != -1:
            return found

    if position is not None:
        return min(max(position, 0), len(chunk_text))
    return 0


def to_grammar_error(chunk: TextChunk, error: LLMGrammarError, index: int) -> GrammarError:
    """Build a chunk-relative GrammarError with surrounding context."""
    start = locate_error(chunk.text, error)
    length = len(error.text)
    return GrammarError(
        id=f"error-{chunk.id}-{index}",
        type=error.type,
        severity=error.severity,
        offset=start,
        length=length,
        message=error.message,
        suggestions=error.suggestions,
        context=ErrorContext(
            before=chunk.text[max(0, start - CONTEXT_CHARS):start],
            error=error.text,
            after=chunk.text[start + length:start + length + CONTEXT_CHARS],
        ),
    )


class GrammarCheckService:
    """Grammar, spelling, punctuation and style errors via chunked LLM calls."""

    def __init__(
        self,
        chat_service: ChatService,
        default_model: str,
        chunker: Optional[TextChunker] = None,
    ):
        self.chat_service = chat_service
        self.default_model = default_model
        self.chunker = chunker or TextChunker(CHUNK_SIZE, CHUNK_OVERLAP, preserve_boundaries=True)

    async def check_chunk(
        self, chunk: TextChunk, model: str, text_format: str = "plain"
    ) -> list[GrammarError]:
        """Check one chunk. Returned offsets are chunk-relative.

        Raises:
            ProviderError: the chat call failed
            JSONExtractionError: no JSON object in the answer
        """
        request = ChatCompletionRequest(
            model=model,
            messages=[
                ChatMessage(role="system", content=GRAMMAR_CHECK_SYSTEM),
                ChatMessage(role="user", content=GRAMMAR_CHECK_USER.format(
                    format_note=FORMAT_NOTES.get(text_format, ""),
                    text=chunk.text,
                )),
            ],
            temperature=GRAMMAR_TEMPERATURE,
            max_tokens=GRAMMAR_MAX_TOKENS,
            n=1,
            stream=False,
        )
        response = await self.chat_service.chat_completion(request)
        parsed = LLMGrammarResponse.model_validate(extract_json_object(response.content))
        return [to_grammar_error(chunk, error, i) for i, error in enumerate(parsed.errors)]

    async def check(self, request: GrammarCheckRequest) -> GrammarCheckResponse:
        model = request.model or self.default_model
        chunks = self.chunker.chunk(request.text)

        log.info(logger, MODULE, "check_start", "Starting chunked grammar check",
                 model=model, chunks=len(chunks), text_length=len(request.text))

        per_chunk: list[list[GrammarError]] = []
        for chunk in chunks:
            try:
                errors = await self.check_chunk(chunk, model, request.format)
            except Exception as e:
                log.warning(logger, MODULE, "chunk_failed", "Grammar check failed for chunk, skipping",
                            chunk_id=chunk.id, error=str(e), error_type=type(e).__name__)
                continue
            per_chunk.append(TextChunker.adjust_offsets(errors, chunk))

        merged = TextChunker.merge_results(per_chunk)

        log.info(logger, MODULE, "check_done", "Grammar check complete",
                 errors=len(merged), processed_chunks=len(per_chunk), total_chunks=len(chunks))

        return GrammarCheckResponse(
            id=f"grammar-check-{int(time.time() * 1000)}",
            errors=merged,
            processed_chunks=len(per_chunk),
            total_chunks=len(chunks),
        )
