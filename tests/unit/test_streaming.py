import asyncio

from md_review.agent.cancellation import CancellationToken
from md_review.agent.llm import GenerationRequest, GenerationResult
from md_review.agent.orchestrator import DualAgentOrchestrator
from md_review.api.streaming import SseChannel, format_sse, stream_review


class HangingGenerator:
    async def generate(
        self, request: GenerationRequest, *, cancel: CancellationToken | None = None
    ) -> GenerationResult:
        assert cancel is not None
        await cancel.guard(asyncio.sleep(10))
        return GenerationResult(text="unreachable")


def test_format_sse_frames_one_event() -> None:
    frame = format_sse("stage", {"agent": "reviewer", "message": "Prüfung"})

    assert frame == 'event: stage\ndata: {"agent": "reviewer", "message": "Prüfung"}\n\n'


def test_channel_drops_sends_after_close() -> None:
    async def scenario() -> list[str]:
        channel = SseChannel()
        channel.send("stage", {"n": 1})
        channel.close()
        channel.send("stage", {"n": 2})
        channel.close()
        return [frame async for frame in channel.frames()]

    assert asyncio.run(scenario()) == ['event: stage\ndata: {"n": 1}\n\n']


def test_consumer_disconnect_cancels_in_flight_call() -> None:
    token = CancellationToken()

    async def scenario() -> str:
        orchestrator = DualAgentOrchestrator(generator=HangingGenerator())
        frames = stream_review("# Title\n\nBody text.", orchestrator=orchestrator, cancel=token)
        first = await frames.__anext__()
        await frames.aclose()
        await asyncio.sleep(0.01)
        return first

    first = asyncio.run(scenario())

    assert first.startswith("event: stage\n")
    assert '"status": "started"' in first
    assert token.cancelled
    assert token.reason == "Client disconnected."


class _FakeRequest:
    def __init__(self, disconnect_after: int) -> None:
        self.polls = 0
        self.disconnect_after = disconnect_after

    async def is_disconnected(self) -> bool:
        self.polls += 1
        return self.polls >= self.disconnect_after


def test_disconnect_watcher_fires_token() -> None:
    from md_review.api.main import _watch_disconnect

    token = CancellationToken()
    request = _FakeRequest(disconnect_after=3)

    asyncio.run(_watch_disconnect(request, token, interval=0.0))

    assert request.polls == 3
    assert token.reason == "Client disconnected."


def test_disconnect_watcher_stops_once_token_fired() -> None:
    from md_review.api.main import _watch_disconnect

    token = CancellationToken()
    token.cancel("Request aborted.")
    request = _FakeRequest(disconnect_after=1)

    asyncio.run(_watch_disconnect(request, token, interval=0.0))

    assert request.polls == 0
    assert token.reason == "Request aborted."
