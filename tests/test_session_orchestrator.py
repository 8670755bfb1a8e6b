import asyncio

import pytest

from conftest import FakeClipboard, FakeRenderingEngine, FakeSpeech, build_orchestrator, settle
from workspace_chat.config.constants import (
    COPIED_NOTICE,
    GENERIC_ERROR_MESSAGE,
    NO_DATA_MESSAGE,
    NOTHING_TO_COPY_NOTICE,
    SPEECH_UNSUPPORTED_MESSAGE,
    VISUALIZATION_ERROR_MESSAGE,
    VOICE_QUERY_BUSY_NOTICE,
)
from workspace_chat.models.chat_models import Failure, FailureReason, Role, TextOnly, TextWithVisualization
from workspace_chat.models.session_models import SpeechState, TurnOutcome, TurnState
from workspace_chat.utils.errors import SourceFetchError
from workspace_chat.utils.selection_channel import SelectionChannel

BAR_CHART = {
    "type": "bar",
    "dimensions": [{"qDef": {"qFieldDefs": ["Region"]}}],
    "measures": [{"qDef": {"qDef": "Avg(Sales)"}}],
}


def transcript(ctx):
    return [(m.role, m.text) for m in ctx.session.messages]


@pytest.mark.anyio
async def test_timed_out_source_is_skipped_and_text_answer_appended() -> None:
    ctx = build_orchestrator(
        sources={
            "s1": {"dims": ["Region"], "rows": [[1, 2]]},
            "s2": SourceFetchError("s2", "took too long", kind="timeout"),
        },
        response=TextOnly(text="Average is 1.5"),
        selected=("s1", "s2"),
    )

    outcome = await ctx.orchestrator.send("What is the average?")

    assert outcome == TurnOutcome.ANSWERED
    assert transcript(ctx) == [(Role.USER, "What is the average?"), (Role.BOT, "Average is 1.5")]
    [payload] = ctx.gateway.payloads
    assert [r.source_id for r in payload.context] == ["s1"]
    assert ctx.engine.events == []
    assert ctx.session.active_chart is None
    assert ctx.session.pending_turn is False
    assert ctx.orchestrator.state == TurnState.IDLE


@pytest.mark.anyio
async def test_visualization_answer_renders_once_and_references_chart() -> None:
    ctx = build_orchestrator(response=TextWithVisualization(text="Here", viz_spec=BAR_CHART))

    outcome = await ctx.orchestrator.send("Show sales by region")

    assert outcome == TurnOutcome.ANSWERED
    bot = ctx.session.messages.messages[-1]
    assert bot.text == "Here"
    assert bot.chart_ref is not None
    assert bot.chart_ref.chart_id == ctx.session.active_chart.chart_id
    assert len(ctx.engine.definitions) == 1
    definition = ctx.engine.definitions[0]
    assert definition["chart_type"] == "barchart"
    assert definition["hypercube_def"]["qMeasures"] == BAR_CHART["measures"]


@pytest.mark.anyio
async def test_answer_message_is_appended_before_chart_is_created() -> None:
    engine = FakeRenderingEngine()
    ctx = build_orchestrator(response=TextWithVisualization(text="Here", viz_spec=BAR_CHART), engine=engine)
    seen = []
    create = engine.create

    async def create_after_message(definition):
        last = ctx.session.messages.messages[-1]
        seen.append((len(ctx.session.messages), last.text, last.chart_ref.chart_id))
        return await create(definition)

    engine.create = create_after_message

    await ctx.orchestrator.send("Show sales by region")

    assert seen == [(2, "Here", ctx.session.active_chart.chart_id)]
    assert ctx.notifier.of_type("message")[-1]["chart_ref"]["chart_id"] == ctx.session.active_chart.chart_id


@pytest.mark.anyio
async def test_malformed_response_reports_generic_error() -> None:
    ctx = build_orchestrator(response=Failure(reason=FailureReason.MALFORMED_RESPONSE, detail="Invalid JSON"))

    outcome = await ctx.orchestrator.send("average?")

    assert outcome == TurnOutcome.FAILED
    assert transcript(ctx)[-1] == (Role.BOT, GENERIC_ERROR_MESSAGE)
    assert "Invalid JSON" not in GENERIC_ERROR_MESSAGE
    assert ctx.session.messages.messages[-1].is_error
    assert ctx.session.pending_turn is False


@pytest.mark.anyio
async def test_empty_context_short_circuits_without_backend_call() -> None:
    ctx = build_orchestrator(sources={}, response=TextOnly(text="unused"), selected=("gone",))

    outcome = await ctx.orchestrator.send("anything?")

    assert outcome == TurnOutcome.NO_DATA
    assert ctx.gateway.calls == 0
    assert transcript(ctx) == [(Role.USER, "anything?"), (Role.BOT, NO_DATA_MESSAGE)]
    assert ctx.session.pending_turn is False


@pytest.mark.anyio
async def test_empty_context_can_still_call_backend_when_configured() -> None:
    ctx = build_orchestrator(
        sources={},
        response=TextOnly(text="General answer"),
        selected=(),
        call_backend_without_context=True,
    )

    outcome = await ctx.orchestrator.send("hello?")

    assert outcome == TurnOutcome.ANSWERED
    assert ctx.gateway.calls == 1
    assert ctx.gateway.payloads[0].context == ()


@pytest.mark.anyio
@pytest.mark.parametrize("query", ["", "   ", "\n"])
async def test_empty_query_has_no_side_effects(query) -> None:
    ctx = build_orchestrator(response=TextOnly(text="x"))

    outcome = await ctx.orchestrator.send(query)

    assert outcome == TurnOutcome.REJECTED_EMPTY
    assert len(ctx.session.messages) == 0
    assert ctx.session.pending_turn is False
    assert ctx.data_api.calls == []
    assert ctx.notifier.events == []


@pytest.mark.anyio
async def test_second_turn_is_rejected_while_first_is_pending() -> None:
    gate = asyncio.Event()
    ctx = build_orchestrator(response=TextOnly(text="done"), gate=gate)

    first = asyncio.create_task(ctx.orchestrator.send("first"))
    await settle()
    assert ctx.session.pending_turn is True
    assert ctx.orchestrator.state == TurnState.AWAITING_RESPONSE

    assert await ctx.orchestrator.send("second") == TurnOutcome.REJECTED_BUSY
    assert transcript(ctx) == [(Role.USER, "first")]

    gate.set()
    assert await first == TurnOutcome.ANSWERED
    assert ctx.session.pending_turn is False
    assert ctx.gateway.calls == 1
    assert await ctx.orchestrator.send("third") == TurnOutcome.ANSWERED


@pytest.mark.anyio
async def test_second_chart_destroys_first_before_creating() -> None:
    ctx = build_orchestrator(response=TextWithVisualization(text="Here", viz_spec=BAR_CHART))

    await ctx.orchestrator.send("chart one")
    first = ctx.session.active_chart
    await ctx.orchestrator.send("chart two")
    second = ctx.session.active_chart

    assert first.chart_id != second.chart_id
    assert ctx.engine.events == [
        ("create", first.instance),
        ("destroy", first.instance),
        ("create", second.instance),
    ]
    assert ctx.engine.max_live == 1


@pytest.mark.anyio
async def test_broken_chart_keeps_text_answer() -> None:
    ctx = build_orchestrator(response=TextWithVisualization(text="Here is a radar", viz_spec={"type": "radar"}))

    outcome = await ctx.orchestrator.send("radar please")

    assert outcome == TurnOutcome.ANSWERED
    assert transcript(ctx) == [
        (Role.USER, "radar please"),
        (Role.BOT, "Here is a radar"),
        (Role.BOT, VISUALIZATION_ERROR_MESSAGE),
    ]
    answer, error = ctx.session.messages.messages[1:]
    assert answer.chart_ref is None and not answer.is_error
    assert error.is_error
    assert ctx.session.active_chart is None


@pytest.mark.anyio
async def test_engine_failure_keeps_text_answer() -> None:
    ctx = build_orchestrator(
        response=TextWithVisualization(text="Here", viz_spec=BAR_CHART),
        engine=FakeRenderingEngine(fail=RuntimeError("extension missing")),
    )

    await ctx.orchestrator.send("chart")

    assert transcript(ctx)[1:] == [(Role.BOT, "Here"), (Role.BOT, VISUALIZATION_ERROR_MESSAGE)]
    assert ctx.session.active_chart is None


@pytest.mark.anyio
async def test_unexpected_collaborator_error_never_escapes() -> None:
    ctx = build_orchestrator(response=RuntimeError("bug in gateway"))

    outcome = await ctx.orchestrator.send("average?")

    assert outcome == TurnOutcome.FAILED
    assert transcript(ctx)[-1] == (Role.BOT, GENERIC_ERROR_MESSAGE)
    assert ctx.session.pending_turn is False
    assert ctx.orchestrator.state == TurnState.IDLE


@pytest.mark.anyio
async def test_ui_is_notified_in_turn_order() -> None:
    ctx = build_orchestrator(response=TextOnly(text="Average is 1.5"))

    await ctx.orchestrator.send("average?")

    kinds = [event_type for event_type, _ in ctx.notifier.events]
    assert kinds == ["message", "loading", "message", "loading"]
    assert ctx.notifier.of_type("loading") == [True, False]
    assert [m["role"] for m in ctx.notifier.of_type("message")] == ["user", "bot"]


@pytest.mark.anyio
async def test_answer_is_spoken_when_speech_enabled() -> None:
    ctx = build_orchestrator(response=TextOnly(text="Average is 1.5"))
    await ctx.orchestrator.toggle_speech()

    await ctx.orchestrator.send("average?")
    await settle()

    assert ctx.speech.spoken == [("Average is 1.5", "en-US")]
    assert ctx.orchestrator.speech.state == SpeechState.SPEAKING

    await ctx.orchestrator.toggle_speech()
    assert ctx.orchestrator.speech.state == SpeechState.IDLE
    assert ctx.speech.cancelled == 1


@pytest.mark.anyio
async def test_speech_unsupported_does_not_break_turn() -> None:
    ctx = build_orchestrator(response=TextOnly(text="ok"), speech=FakeSpeech(synthesis=False))
    await ctx.orchestrator.toggle_speech()

    outcome = await ctx.orchestrator.send("average?")

    assert outcome == TurnOutcome.ANSWERED
    assert ctx.notifier.of_type("error") == [SPEECH_UNSUPPORTED_MESSAGE]


@pytest.mark.anyio
async def test_voice_input_is_sent_as_query() -> None:
    ctx = build_orchestrator(response=TextOnly(text="Average is 1.5"))

    voice = asyncio.create_task(ctx.orchestrator.toggle_voice_input())
    await settle()
    assert ctx.orchestrator.speech.state == SpeechState.LISTENING

    ctx.speech.hear("what is the average")

    assert await voice == TurnOutcome.ANSWERED
    assert transcript(ctx)[0] == (Role.USER, "what is the average")


@pytest.mark.anyio
async def test_voice_query_during_pending_turn_is_reported() -> None:
    gate = asyncio.Event()
    ctx = build_orchestrator(response=TextOnly(text="done"), gate=gate)

    first = asyncio.create_task(ctx.orchestrator.send("first"))
    await settle()
    voice = asyncio.create_task(ctx.orchestrator.toggle_voice_input())
    await settle()
    ctx.speech.hear("second question")

    assert await voice == TurnOutcome.REJECTED_BUSY
    assert ctx.notifier.of_type("notice") == [VOICE_QUERY_BUSY_NOTICE]
    assert transcript(ctx) == [(Role.USER, "first")]

    gate.set()
    assert await first == TurnOutcome.ANSWERED


@pytest.mark.anyio
async def test_toggle_voice_input_twice_stops_listening() -> None:
    ctx = build_orchestrator(response=TextOnly(text="x"))

    voice = asyncio.create_task(ctx.orchestrator.toggle_voice_input())
    await settle()
    assert await ctx.orchestrator.toggle_voice_input() is None

    assert await voice is None
    assert len(ctx.session.messages) == 0
    assert ctx.orchestrator.speech.state == SpeechState.IDLE


@pytest.mark.anyio
async def test_copy_last_answer() -> None:
    clipboard = FakeClipboard()
    ctx = build_orchestrator(response=TextOnly(text="Average is 1.5"), clipboard=clipboard)

    assert await ctx.orchestrator.copy_last() == NOTHING_TO_COPY_NOTICE
    await ctx.orchestrator.send("average?")

    assert await ctx.orchestrator.copy_last() == COPIED_NOTICE
    assert clipboard.writes == ["Average is 1.5"]
    assert ctx.notifier.of_type("notice") == [NOTHING_TO_COPY_NOTICE, COPIED_NOTICE]


@pytest.mark.anyio
async def test_selection_channel_replaces_selection_in_full() -> None:
    ctx = build_orchestrator(selected=("old",))
    channel = SelectionChannel()
    ctx.orchestrator.attach_selection_channel(channel)

    channel.publish(["a", "b", "a", " "])
    await channel.drain()
    assert ctx.session.selected_source_ids == ("a", "b")

    ctx.orchestrator.clear_selection()
    await channel.drain()
    assert ctx.session.selected_source_ids == ()

    await ctx.orchestrator.close()


@pytest.mark.anyio
async def test_close_releases_chart_and_speech() -> None:
    ctx = build_orchestrator(response=TextWithVisualization(text="Here", viz_spec=BAR_CHART))
    await ctx.orchestrator.toggle_speech()
    await ctx.orchestrator.send("chart")
    await settle()
    chart = ctx.session.active_chart

    await ctx.orchestrator.close()

    assert ctx.session.active_chart is None
    assert ctx.engine.events[-1] == ("destroy", chart.instance)
    assert ctx.engine.live == set()
    assert ctx.orchestrator.speech.state == SpeechState.IDLE
