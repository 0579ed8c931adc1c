"""Incremental decoding of a streamed completion body.

The body is treated as newline-delimited frames:

    data: {"choices":[{"delta":{"content":"Hel"}}]}    → token "Hel"
    data: [DONE]                                       → nothing
    <blank line>                                       → nothing in an SSE body,
                                                         "\n" in a plain-text body
    any other line                                     → passed through verbatim

A body counts as SSE once a "data:" or ":" comment line has been seen.

Chunks may split a frame (or a UTF-8 character) anywhere; a frame is only
decoded once its line terminator has arrived, and whatever is left when the
source is exhausted is flushed through the same logic.
"""

from __future__ import annotations

import codecs
import inspect
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

TokenCallback = Callable[[str], Awaitable[None] | None]


def _extract_content(payload: object) -> str | None:
    """choices[0].delta.content, falling back to choices[0].message.content."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    first = choices[0]
    for key in ("delta", "message"):
        part = first.get(key)
        if isinstance(part, dict) and isinstance(part.get("content"), str):
            return part["content"]
    return None


def decode_frame(line: str) -> str | None:
    """Decode one line (without its terminator) into a token, or None."""
    if line.startswith(DATA_PREFIX):
        data = line[len(DATA_PREFIX):].strip()
        if not data or data == DONE_SENTINEL:
            return None
        try:
            content = _extract_content(json.loads(data))
        except json.JSONDecodeError as e:
            logger.debug("Skipping undecodable stream frame %r: %s", data[:80], e)
            return None
        if content is None:
            logger.debug("Stream frame carries no content: %r", data[:80])
        return content or None
    if not line.strip():
        return None
    return line


async def iter_tokens(source: AsyncIterable[bytes | str]) -> AsyncIterator[str]:
    """Yield decoded tokens from source in arrival order."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    sse = False

    async for chunk in source:
        buffer += decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        while "\n" in buffer:
            line, buffer = buffer.split("\n", 1)
            line = line.rstrip("\r")
            if line.startswith((DATA_PREFIX, ":")):
                sse = True
            elif not line.strip():
                # Paragraph break in plain text, frame separator in SSE
                if not sse:
                    yield "\n"
                continue
            token = decode_frame(line)
            if token is not None:
                # Raw-text lines keep their terminator so layout survives
                yield token if line.startswith(DATA_PREFIX) else token + "\n"

    buffer += decoder.decode(b"", final=True)
    if buffer:
        token = decode_frame(buffer.rstrip("\r"))
        if token is not None:
            yield token


async def read_stream(
    source: AsyncIterable[bytes | str],
    on_token: TokenCallback | None = None,
) -> str:
    """Consume source completely and return the concatenation of all tokens.

    on_token (sync or async) is called with every token as it is decoded.
    If consumption is cancelled the result is never produced; callers that
    need partial text must collect it through on_token.
    """
    parts: list[str] = []
    async for token in iter_tokens(source):
        parts.append(token)
        if on_token is not None:
            result = on_token(token)
            if inspect.isawaitable(result):
                await result
    return "".join(parts)
