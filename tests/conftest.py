import asyncio
from types import SimpleNamespace

import pytest

from workspace_chat.controllers.session_orchestrator import SessionOrchestrator
from workspace_chat.helper.clipboard_notifier import ClipboardNotifier
from workspace_chat.helper.data_aggregator import DataAggregator
from workspace_chat.helper.request_composer import RequestComposer
from workspace_chat.helper.speech_controller import SpeechController
from workspace_chat.helper.visualization_dispatcher import VisualizationDispatcher
from workspace_chat.utils.errors import SourceFetchError


@pytest.fixture
def anyio_backend():
    return "asyncio"


async def settle(rounds: int = 10):
    """Let scheduled tasks run without relying on wall-clock time."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeDataApi:
    """Sources map to a payload, an exception to raise, or an async callable."""

    def __init__(self, sources):
        self.sources = sources
        self.calls = []

    async def get_source_layout(self, source_id):
        self.calls.append(source_id)
        if source_id not in self.sources:
            raise SourceFetchError(source_id, "missing object", kind="not_found")
        outcome = self.sources[source_id]
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome()
        return outcome


class FakeGateway:
    def __init__(self, response=None, gate: asyncio.Event = None):
        self.response = response
        self.gate = gate
        self.payloads = []
        self.closed = False

    @property
    def calls(self):
        return len(self.payloads)

    async def send(self, payload):
        self.payloads.append(payload)
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(self.response, BaseException):
            raise self.response
        return self.response

    async def aclose(self):
        self.closed = True


class FakeRenderingEngine:
    def __init__(self, fail: Exception = None):
        self.fail = fail
        self.events = []
        self.definitions = []
        self.live = set()
        self.max_live = 0

    async def create(self, definition):
        if self.fail is not None:
            raise self.fail
        self.definitions.append(definition)
        instance = f"instance-{definition['chart_id']}"
        self.events.append(("create", instance))
        self.live.add(instance)
        self.max_live = max(self.max_live, len(self.live))
        return instance

    async def destroy(self, instance):
        self.events.append(("destroy", instance))
        self.live.discard(instance)


class FakeSpeech:
    def __init__(self, synthesis: bool = True, recognition: bool = True):
        self.supports_synthesis = synthesis
        self.supports_recognition = recognition
        self.spoken = []
        self.cancelled = 0
        self.stopped = 0
        self._utterance = None
        self._recognition = None

    async def speak(self, text, lang):
        self.spoken.append((text, lang))
        self._utterance = asyncio.get_running_loop().create_future()
        await self._utterance

    def finish(self):
        if self._utterance is not None and not self._utterance.done():
            self._utterance.set_result(None)

    async def cancel(self):
        self.cancelled += 1

    async def start_recognition(self, lang):
        self._recognition = asyncio.get_running_loop().create_future()
        return await self._recognition

    def hear(self, text):
        self._recognition.set_result(text)

    def fail_recognition(self, error):
        self._recognition.set_exception(RuntimeError(error))

    async def stop_recognition(self):
        self.stopped += 1
        if self._recognition is not None and not self._recognition.done():
            self._recognition.set_result(None)


class FakeClipboard:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.writes = []

    async def write_text(self, text):
        if self.fail:
            raise RuntimeError("clipboard denied")
        self.writes.append(text)


class RecordingNotifier:
    def __init__(self):
        self.events = []

    async def __call__(self, type, content=None):
        self.events.append((type, content))

    def of_type(self, type):
        return [content for event_type, content in self.events if event_type == type]


S1_LAYOUT = {
    "type": "barchart",
    "title": "Sales by region",
    "dims": ["Region"],
    "rows": [[1, 2]],
}


def build_orchestrator(
    sources=None,
    response=None,
    gate=None,
    engine=None,
    speech=None,
    clipboard=None,
    selected=("s1",),
    call_backend_without_context=False,
):
    data_api = FakeDataApi(sources if sources is not None else {"s1": S1_LAYOUT})
    gateway = FakeGateway(response, gate=gate)
    engine = engine or FakeRenderingEngine()
    speech = speech or FakeSpeech()
    clipboard = clipboard or FakeClipboard()
    notifier = RecordingNotifier()

    orchestrator = SessionOrchestrator(
        aggregator=DataAggregator(data_api),
        composer=RequestComposer(model="test-model"),
        gateway=gateway,
        dispatcher=VisualizationDispatcher(engine),
        speech=SpeechController(speech, lang="en-US"),
        clipboard=ClipboardNotifier(clipboard),
        call_backend_without_context=call_backend_without_context,
        notifier=notifier,
    )
    orchestrator.on_selection_changed(selected)
    return SimpleNamespace(
        orchestrator=orchestrator,
        session=orchestrator.session,
        data_api=data_api,
        gateway=gateway,
        engine=engine,
        speech=speech,
        clipboard=clipboard,
        notifier=notifier,
    )
