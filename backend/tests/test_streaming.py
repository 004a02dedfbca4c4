"""Tests for stream normalization."""

import json

import pytest

from adal_core.streaming import SSELineDecoder, encode_fragments, normalize_sse, normalize_text_iterable


def frame(content: str) -> bytes:
    payload = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


async def chunks_of(*parts: bytes):
    for part in parts:
        yield part


async def collect(fragments) -> list[str]:
    return [f async for f in fragments]


class TestNormalizeSSE:
    """Line-framed streams."""

    @pytest.mark.asyncio
    async def test_single_frame_then_done(self):
        fragments = await collect(normalize_sse(chunks_of(frame("Hi") + b"data: [DONE]\n\n")))
        assert fragments == ["Hi"]

    @pytest.mark.asyncio
    async def test_frame_split_across_chunks(self):
        data = frame("X")
        fragments = await collect(normalize_sse(chunks_of(data[:7], data[7:20], data[20:])))
        assert fragments == ["X"]

    @pytest.mark.asyncio
    async def test_malformed_line_is_skipped(self):
        stream = chunks_of(frame("a"), b"data: {not json}\n\n", frame("b"), b"data: [DONE]\n")
        assert await collect(normalize_sse(stream)) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_multibyte_character_split_across_chunks(self):
        data = frame("¡Adiós!")
        split_at = data.index("ó".encode("utf-8")) + 1
        fragments = await collect(normalize_sse(chunks_of(data[:split_at], data[split_at:])))
        assert fragments == ["¡Adiós!"]

    @pytest.mark.asyncio
    async def test_nothing_after_sentinel(self):
        stream = chunks_of(frame("one"), b"data: [DONE]\n" + frame("two"), frame("three"))
        assert await collect(normalize_sse(stream)) == ["one"]

    @pytest.mark.asyncio
    async def test_non_data_lines_ignored(self):
        stream = chunks_of(b": keep-alive\n", b"event: message\n", frame("ok"))
        assert await collect(normalize_sse(stream)) == ["ok"]

    @pytest.mark.asyncio
    async def test_trailing_frame_without_newline(self):
        data = frame("end").rstrip(b"\n")
        assert await collect(normalize_sse(chunks_of(data))) == ["end"]

    @pytest.mark.asyncio
    async def test_order_preserved(self):
        stream = chunks_of(*(frame(str(i)) for i in range(10)))
        assert await collect(normalize_sse(stream)) == [str(i) for i in range(10)]


class TestSSELineDecoder:
    def test_done_flag_stops_feeding(self):
        decoder = SSELineDecoder()
        assert decoder.feed(b"data: [DONE]\n") == []
        assert decoder.done
        assert decoder.feed(frame("late")) == []

    def test_empty_delta_produces_nothing(self):
        decoder = SSELineDecoder()
        assert decoder.feed(b'data: {"choices": [{"delta": {}}]}\n') == []
        assert decoder.feed(b'data: {"choices": []}\n') == []


class TestNormalizeTextIterable:
    @pytest.mark.asyncio
    async def test_empty_fragments_dropped(self):
        async def source():
            for item in ["a", "", None, "b"]:
                yield item

        assert await collect(normalize_text_iterable(source())) == ["a", "b"]


class TestEncodeFragments:
    @pytest.mark.asyncio
    async def test_encodes_utf8(self):
        async def source():
            yield "¡hola"
            yield " mundo!"

        assert [b async for b in encode_fragments(source())] == ["¡hola".encode("utf-8"), b" mundo!"]

    @pytest.mark.asyncio
    async def test_failure_after_first_fragment_propagates(self):
        async def source():
            yield "parcial"
            raise RuntimeError("upstream cut")

        received = []
        with pytest.raises(RuntimeError, match="upstream cut"):
            async for chunk in encode_fragments(source(), label="openai"):
                received.append(chunk)
        assert received == [b"parcial"]
