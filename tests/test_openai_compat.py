"""Tests for the OpenAI-compatible provider and its tool loop"""

import asyncio
import json

import httpx
import pytest

from switchboard.config.schema import ProviderConfig, ProviderKind
from switchboard.provider.base import ChatMessage, QueryOptions, StatelessHistory


def sse(*events, done=True) -> bytes:
    lines = [f"data: {json.dumps(event)}\n\n" for event in events]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def delta(text, finish=None):
    return {"choices": [{"delta": {"content": text}, "finish_reason": finish}]}


def completion(content=None, tool_calls=None, usage=None):
    message = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    data = {"choices": [{"message": message, "finish_reason": "tool_calls" if tool_calls else "stop"}]}
    if usage:
        data["usage"] = usage
    return data


def tool_call(call_id, name, args):
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": json.dumps(args)}}


class StallingStream(httpx.AsyncByteStream):
    """Sends one chunk, then never finishes the body"""

    def __init__(self, first: bytes):
        self.first = first

    async def __aiter__(self):
        yield self.first
        await asyncio.sleep(30)
        yield b""


class FakeTools:
    def __init__(self, result="ok"):
        self.result = result
        self.calls = []

    def get_schemas(self):
        return [{"type": "function", "function": {"name": "read_file", "description": "", "parameters": {}}}]

    async def execute(self, name, args, working_dir=None):
        self.calls.append((name, args))
        return self.result


def make_provider(handler, tools=None, **overrides):
    from switchboard.provider.openai_compat import OpenAICompatibleProvider

    config = ProviderConfig(**{
        "type": ProviderKind.GENERIC_CHAT,
        "name": "Groq",
        "model": "llama-3.3-70b-versatile",
        "api_key": "test-key",
        "base_url": "https://api.groq.com/openai/v1/",
        **overrides,
    })
    return OpenAICompatibleProvider(config, tools=tools, transport=httpx.MockTransport(handler))


async def collect(provider, prompt="hi", **kwargs):
    return [chunk async for chunk in provider.query(QueryOptions(prompt=prompt, **kwargs))]


class TestSimpleStreaming:
    @pytest.mark.asyncio
    async def test_streams_deltas_until_done(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, content=sse(delta("Hel"), delta("lo"), delta(" there")))

        chunks = await collect(make_provider(handler))

        assert [c.type for c in chunks] == ["text", "text", "text", "done"]
        assert [c.delta for c in chunks[:3]] == ["Hel", "lo", " there"]
        assert chunks[1].text == "Hello"
        assert chunks[-1].text == "Hello there"
        assert chunks[-1].cost_usd >= 0

        request = requests[0]
        body = json.loads(request.content)
        assert str(request.url) == "https://api.groq.com/openai/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer test-key"
        assert body["stream"] is True
        assert "tools" not in body

    @pytest.mark.asyncio
    async def test_finish_reason_ends_stream(self):
        handler = lambda r: httpx.Response(200, content=sse(delta("a"), delta("b", finish="stop"), delta("ignored")))

        chunks = await collect(make_provider(handler))

        assert chunks[-1].type == "done"
        assert chunks[-1].text == "ab"
        assert len([c for c in chunks if c.is_terminal]) == 1

    @pytest.mark.asyncio
    async def test_skips_noise_lines(self):
        body = b": keep-alive\n\nevent: ping\ndata: not-json\n\n" + sse(delta("x"))

        chunks = await collect(make_provider(lambda r: httpx.Response(200, content=body)))

        assert [c.type for c in chunks] == ["text", "done"]

    @pytest.mark.asyncio
    async def test_stream_end_without_done_marker(self):
        handler = lambda r: httpx.Response(200, content=sse(delta("partial"), done=False))

        chunks = await collect(make_provider(handler))

        assert chunks[-1].type == "done"
        assert chunks[-1].text == "partial"

    @pytest.mark.asyncio
    async def test_empty_stream_is_error(self):
        chunks = await collect(make_provider(lambda r: httpx.Response(200, content=b"")))

        assert [c.type for c in chunks] == ["error"]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        handler = lambda r: httpx.Response(500, text="upstream exploded")

        chunks = await collect(make_provider(handler))

        assert len(chunks) == 1
        assert chunks[0].error == "Groq API error (500): upstream exploded"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        chunks = await collect(make_provider(handler))

        assert chunks[0].type == "error"
        assert chunks[0].error.startswith("Groq error:")

    @pytest.mark.asyncio
    async def test_cancelled_stream(self):
        cancel = asyncio.Event()
        cancel.set()
        handler = lambda r: httpx.Response(200, content=sse(delta("a")))

        chunks = await collect(make_provider(handler), cancel=cancel)

        assert [(c.type, c.error) for c in chunks] == [("error", "Request aborted")]

    @pytest.mark.asyncio
    async def test_cancel_while_body_stalls(self):
        cancel = asyncio.Event()
        handler = lambda r: httpx.Response(200, stream=StallingStream(sse(delta("Hel"), done=False)))
        provider = make_provider(handler)
        chunks = []

        async def consume():
            async for chunk in provider.query(QueryOptions(prompt="hi", cancel=cancel)):
                chunks.append(chunk)
                if chunk.type == "text":
                    asyncio.get_running_loop().call_later(0.05, cancel.set)

        await asyncio.wait_for(consume(), timeout=2)

        assert [(c.type, c.error) for c in chunks] == [("text", ""), ("error", "Request aborted")]

    @pytest.mark.asyncio
    async def test_cancel_while_waiting_for_headers(self):
        cancel = asyncio.Event()

        async def handler(request):
            await asyncio.sleep(30)
            return httpx.Response(200, content=sse(delta("late")))

        asyncio.get_running_loop().call_later(0.05, cancel.set)
        chunks = await asyncio.wait_for(collect(make_provider(handler), cancel=cancel), timeout=2)

        assert [(c.type, c.error) for c in chunks] == [("error", "Request aborted")]

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self):
        handler = lambda r: httpx.Response(200, stream=StallingStream(sse(delta("Hel"), done=False)))

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(collect(make_provider(handler), cancel=asyncio.Event()), timeout=0.2)

    @pytest.mark.asyncio
    async def test_non_object_events_are_skipped(self):
        body = b"data: [1, 2]\n\ndata: \"text\"\n\n" + sse({"choices": ["bad"]}, {"choices": [{"delta": "x"}]}, delta("ok"))

        chunks = await collect(make_provider(lambda r: httpx.Response(200, content=body)))

        assert [c.type for c in chunks] == ["text", "done"]
        assert chunks[-1].text == "ok"


class TestMessages:
    def test_system_history_user_order(self):
        provider = make_provider(lambda r: httpx.Response(200))
        options = QueryOptions(
            prompt="next",
            system_prompt="be brief",
            continuation=StatelessHistory((
                ChatMessage(role="user", content="first"),
                ChatMessage(role="assistant", content="reply"),
            )),
        )

        messages = provider.build_messages(options)

        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1]["content"] == "next"

    def test_images_only_with_vision(self):
        history = StatelessHistory((ChatMessage(role="user", content="look", images=["aGVsbG8="]),))
        options = QueryOptions(prompt="?", continuation=history)

        plain = make_provider(lambda r: httpx.Response(200)).build_messages(options)
        vision = make_provider(lambda r: httpx.Response(200), supports_vision=True).build_messages(options)

        assert plain[0]["content"] == "look"
        assert vision[0]["content"][1] == {
            "type": "image_url",
            "image_url": {"url": "data:image/jpeg;base64,aGVsbG8="},
        }

    def test_openrouter_headers(self):
        provider = make_provider(lambda r: httpx.Response(200), base_url="https://openrouter.ai/api/v1")

        headers = provider.build_headers()

        assert "HTTP-Referer" in headers
        assert headers["X-Title"] == "switchboard"


class TestToolMode:
    @pytest.mark.asyncio
    async def test_runs_tools_then_answers(self):
        tools = FakeTools(result="file contents")
        bodies = []

        def handler(request):
            body = json.loads(request.content)
            bodies.append(body)
            if len(bodies) == 1:
                return httpx.Response(200, json=completion(
                    tool_calls=[tool_call("call_1", "read_file", {"path": "a.txt"})],
                    usage={"prompt_tokens": 100, "completion_tokens": 20},
                ))
            return httpx.Response(200, json=completion(content="It says hi."))

        chunks = await collect(make_provider(handler, tools=tools))

        assert [c.type for c in chunks] == ["tool_use", "tool_result", "text", "done"]
        assert chunks[0].tool_name == "read_file"
        assert json.loads(chunks[0].tool_input) == {"path": "a.txt"}
        assert chunks[1].text == "file contents"
        assert chunks[-1].text == "It says hi."
        assert chunks[-1].cost_usd >= 0
        assert tools.calls == [("read_file", {"path": "a.txt"})]

        assert bodies[0]["tool_choice"] == "auto"
        assert "stream" not in bodies[0]
        second = bodies[1]["messages"]
        assert second[-2]["role"] == "assistant"
        assert second[-1] == {"role": "tool", "tool_call_id": "call_1", "content": "file contents"}

    @pytest.mark.asyncio
    async def test_previews_are_truncated(self):
        tools = FakeTools(result="x" * 1000)
        responses = iter([
            completion(tool_calls=[tool_call("c1", "read_file", {"path": "y" * 500})]),
            completion(content="done"),
        ])
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=next(responses))

        chunks = await collect(make_provider(handler, tools=tools))

        assert len(chunks[0].tool_input) == 200
        assert len(chunks[1].text) == 200
        assert bodies[1]["messages"][-1]["content"] == "x" * 1000

    @pytest.mark.asyncio
    async def test_stops_after_max_rounds(self):
        tools = FakeTools()
        count = {"requests": 0}

        def handler(request):
            count["requests"] += 1
            return httpx.Response(200, json=completion(
                tool_calls=[tool_call(f"c{count['requests']}", "read_file", {"path": "loop"})],
            ))

        chunks = await collect(make_provider(handler, tools=tools))

        assert count["requests"] == 10
        assert len(tools.calls) == 10
        assert chunks[-1].type == "error"
        assert chunks[-1].error == "Max tool call rounds reached"

    @pytest.mark.asyncio
    async def test_max_rounds_with_text_is_done(self):
        handler = lambda r: httpx.Response(200, json=completion(
            content="thinking...", tool_calls=[tool_call("c", "read_file", {})],
        ))

        chunks = await collect(make_provider(handler, tools=FakeTools()))

        assert chunks[-1].type == "done"
        assert chunks[-1].text == "thinking..." * 10

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 422])
    async def test_rejected_tools_fall_back_to_streaming(self, status):
        bodies = []

        def handler(request):
            body = json.loads(request.content)
            bodies.append(body)
            if "tools" in body:
                return httpx.Response(status, text="tools not supported")
            return httpx.Response(200, content=sse(delta("plain answer")))

        chunks = await collect(make_provider(handler, tools=FakeTools()))

        assert [c.type for c in chunks] == ["text", "done"]
        assert chunks[-1].text == "plain answer"
        assert "tools" in bodies[0]
        assert bodies[1]["stream"] is True

    @pytest.mark.asyncio
    async def test_server_error_is_not_downgraded(self):
        chunks = await collect(make_provider(lambda r: httpx.Response(503, text="busy"), tools=FakeTools()))

        assert [c.type for c in chunks] == ["error"]
        assert "(503)" in chunks[0].error

    @pytest.mark.asyncio
    async def test_later_round_rejection_is_error(self):
        responses = iter([
            httpx.Response(200, json=completion(tool_calls=[tool_call("c1", "read_file", {})])),
            httpx.Response(400, text="bad tool message"),
        ])

        chunks = await collect(make_provider(lambda r: next(responses), tools=FakeTools()))

        assert [c.type for c in chunks] == ["tool_use", "tool_result", "error"]
        assert "(400)" in chunks[-1].error

    @pytest.mark.asyncio
    async def test_no_choices(self):
        chunks = await collect(make_provider(lambda r: httpx.Response(200, json={"choices": []}), tools=FakeTools()))

        assert chunks[-1].error == "No response from provider"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        [{"x": 1}],
        {"choices": ["not an object"]},
        {"choices": [{"message": "plain string"}]},
        {"choices": [{"message": {"content": "hi", "tool_calls": ["oops"]}}]},
    ])
    async def test_malformed_body_is_error_chunk(self, payload):
        chunks = await collect(make_provider(lambda r: httpx.Response(200, json=payload), tools=FakeTools()))

        assert [c.type for c in chunks] == ["error"]
        assert chunks[0].error.startswith("Malformed response from Groq")

    @pytest.mark.asyncio
    async def test_cancel_during_tools(self):
        cancel = asyncio.Event()

        class CancellingTools(FakeTools):
            async def execute(self, name, args, working_dir=None):
                cancel.set()
                return "partial"

        handler = lambda r: httpx.Response(200, json=completion(tool_calls=[tool_call("c", "read_file", {})]))

        chunks = await collect(make_provider(handler, tools=CancellingTools()), cancel=cancel)

        assert chunks[-1].type == "error"
        assert chunks[-1].error == "Request aborted"

    @pytest.mark.asyncio
    async def test_tools_ignored_when_endpoint_not_capable(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, content=sse(delta("hi")))

        provider = make_provider(handler, tools=FakeTools(), base_url="http://localhost:11434/v1")

        await collect(provider)

        assert "tools" not in bodies[0]


class TestProviderInfo:
    def test_tool_capability(self):
        handler = lambda r: httpx.Response(200)

        assert make_provider(handler).supports_tool_use() is True
        assert make_provider(handler, base_url="http://localhost:1234/v1").supports_tool_use() is False
        assert make_provider(handler, base_url="http://proxy.internal/v1", supports_tools=True).supports_tool_use()

    def test_get_info(self):
        handler = lambda r: httpx.Response(200)

        info = make_provider(handler).get_info()
        local = make_provider(handler, api_key=None, base_url="http://localhost:11434/v1").get_info()
        missing = make_provider(handler, api_key=None).get_info()

        assert info.name == "Groq [tools]"
        assert info.status == "configured"
        assert local.status == "local"
        assert missing.status == "no API key"

    @pytest.mark.asyncio
    async def test_remote_availability_is_key_presence(self):
        def handler(request):
            raise AssertionError("no network call expected")

        assert await make_provider(handler).is_available() is True
        assert await make_provider(handler, api_key=None).is_available() is False

    @pytest.mark.asyncio
    async def test_local_availability_checks_models(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={"data": []})

        provider = make_provider(handler, api_key=None, base_url="http://localhost:11434/v1")

        assert await provider.is_available() is True
        assert paths == ["/v1/models"]

    @pytest.mark.asyncio
    async def test_local_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        provider = make_provider(handler, api_key=None, base_url="http://localhost:11434/v1")

        assert await provider.is_available() is False
