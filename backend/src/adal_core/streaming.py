"""Stream normalization: provider wire formats in, plain text fragments out."""

import codecs
import json
import logging
from typing import Any, AsyncGenerator, AsyncIterable, Callable

from fastapi.responses import StreamingResponse

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def extract_chat_delta(payload: dict[str, Any]) -> str | None:
    """Pull ``choices[0].delta.content`` out of a chat-completions chunk."""
    choices = payload.get("choices") or []
    if not choices:
        return None
    delta = choices[0].get("delta") or {}
    return delta.get("content")


class SSELineDecoder:
    """Incremental decoder for ``data: {...}`` framed streams.

    Bytes are fed in arbitrary chunks. Complete lines are parsed as they
    appear; a partial line stays buffered until its newline arrives, so a
    JSON frame split across network reads is reassembled. Multi-byte UTF-8
    characters split across reads are handled by the incremental decoder.
    """

    def __init__(
        self,
        extract: Callable[[dict[str, Any]], str | None] = extract_chat_delta,
        label: str = "upstream",
    ):
        self._extract = extract
        self._label = label
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False

    def feed(self, chunk: bytes) -> list[str]:
        """Consume a chunk and return the text fragments it completed."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(chunk)
        return self._drain()

    def flush(self) -> list[str]:
        """Process whatever is left once the source is exhausted."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        if self._buffer:
            self._buffer += "\n"
        return self._drain()

    def _drain(self) -> list[str]:
        fragments: list[str] = []
        while not self.done:
            boundary = self._buffer.find("\n")
            if boundary == -1:
                break
            line = self._buffer[:boundary].strip()
            self._buffer = self._buffer[boundary + 1 :]

            if not line.startswith(DATA_PREFIX):
                continue
            message = line[len(DATA_PREFIX) :].strip()
            if message == DONE_SENTINEL:
                # Anything after the sentinel is discarded
                self.done = True
                self._buffer = ""
                break
            try:
                content = self._extract(json.loads(message))
            except (json.JSONDecodeError, AttributeError, TypeError, IndexError) as e:
                logger.warning(f"[{self._label}] Skipping malformed stream line: {message[:120]!r} ({e})")
                continue
            if content:
                fragments.append(content)
        return fragments


async def normalize_sse(
    chunks: AsyncIterable[bytes],
    label: str = "upstream",
    extract: Callable[[dict[str, Any]], str | None] = extract_chat_delta,
) -> AsyncGenerator[str, None]:
    """Turn an SSE-framed byte stream into text fragments.

    Stops reading as soon as the ``[DONE]`` sentinel is seen.
    """
    decoder = SSELineDecoder(extract=extract, label=label)
    async for chunk in chunks:
        for fragment in decoder.feed(chunk):
            yield fragment
        if decoder.done:
            return
    for fragment in decoder.flush():
        yield fragment


async def normalize_text_iterable(fragments: AsyncIterable[str | None]) -> AsyncGenerator[str, None]:
    """Forward each non-empty fragment of a native async text stream."""
    async for fragment in fragments:
        if fragment:
            yield fragment


async def encode_fragments(fragments: AsyncIterable[str], label: str = "upstream") -> AsyncGenerator[bytes, None]:
    """Encode fragments for the response body.

    A failure after the response has started can no longer change the status
    code. It is logged and re-raised so the server aborts the chunked body
    and the client sees a broken stream rather than a clean end.
    """
    try:
        async for fragment in fragments:
            yield fragment.encode("utf-8")
    except Exception as e:
        logger.error(f"[{label}] Stream aborted mid-response: {e}")
        raise


def create_text_stream_response(generator: AsyncIterable[bytes]) -> StreamingResponse:
    """Create the incrementally delivered plain-text response."""
    return StreamingResponse(
        generator,
        media_type="text/plain; charset=utf-8",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
