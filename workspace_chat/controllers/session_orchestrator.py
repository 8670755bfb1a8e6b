import asyncio
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from workspace_chat.ai.reasoning_gateway import ReasoningGateway
from workspace_chat.config.constants import GENERIC_ERROR_MESSAGE, VOICE_QUERY_BUSY_NOTICE
from workspace_chat.config.logger import get_logger
from workspace_chat.helper.clipboard_notifier import ClipboardNotifier
from workspace_chat.helper.data_aggregator import DataAggregator
from workspace_chat.helper.request_composer import RequestComposer
from workspace_chat.helper.speech_controller import SpeechController
from workspace_chat.helper.visualization_dispatcher import VisualizationDispatcher
from workspace_chat.models.chat_models import (
    ChartHandle,
    Failure,
    Message,
    PromptTemplate,
    Role,
    TextOnly,
    TextWithVisualization,
)
from workspace_chat.models.session_models import Session, SpeechState, TurnOutcome, TurnState
from workspace_chat.utils.errors import BusyError, EmptyContextError, UnsupportedFeatureError, VisualizationError
from workspace_chat.utils.selection_channel import SelectionChannel, normalize_selection

logger = get_logger("API Logger")

Notifier = Callable[[str, Any], Awaitable[None]]


class SessionOrchestrator:
    """
    Runs the chat turns of one widget session.

    A turn goes IDLE -> AGGREGATING -> COMPOSING -> AWAITING_RESPONSE ->
    APPLYING -> IDLE, or through ERROR_APPLYING when something fails on the
    way. Only one turn runs at a time; a query sent while a turn is pending
    is ignored. This class is the only owner of the active chart and of
    speech transitions.
    """

    def __init__(
        self,
        aggregator: DataAggregator,
        composer: RequestComposer,
        gateway: ReasoningGateway,
        dispatcher: VisualizationDispatcher,
        speech: SpeechController,
        clipboard: ClipboardNotifier,
        session: Session = None,
        template: PromptTemplate = None,
        call_backend_without_context: bool = False,
        notifier: Optional[Notifier] = None,
    ):
        self.aggregator = aggregator
        self.composer = composer
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.speech = speech
        self.clipboard = clipboard
        self.session = session or Session()
        self.template = template
        self.call_backend_without_context = call_backend_without_context
        self.notifier = notifier
        self.state = TurnState.IDLE
        self._selection_channel: Optional[SelectionChannel] = None
        self._selection_task: Optional[asyncio.Task] = None

    async def _emit(self, type: str, content: Any = None):
        if self.notifier is None:
            return
        try:
            await self.notifier(type, content)
        except Exception as e:
            logger.error(f"Failed to notify UI of '{type}': {e}")

    async def _append(self, role: Role, text: str, chart_ref: ChartHandle = None, is_error: bool = False) -> Message:
        message = self.session.messages.append(role, text, chart_ref=chart_ref, is_error=is_error)
        await self._emit("message", message.model_dump(mode="json"))
        return message

    # ------------------------------------------------------------------
    # Turn processing
    # ------------------------------------------------------------------

    async def send(self, query: str) -> TurnOutcome:
        if self.session.pending_turn:
            logger.info("Turn already in progress, ignoring new query")
            return TurnOutcome.REJECTED_BUSY
        if query is None or not query.strip():
            return TurnOutcome.REJECTED_EMPTY

        # Set before the first await so no second turn can slip in
        self.session.pending_turn = True
        try:
            await self._append(Role.USER, query.strip())
            await self._emit("loading", True)
            return await self._run_turn(query)
        except Exception as e:
            logger.exception(f"Unexpected error while processing query: {e}")
            self.state = TurnState.ERROR_APPLYING
            await self._append(Role.BOT, GENERIC_ERROR_MESSAGE, is_error=True)
            return TurnOutcome.FAILED
        finally:
            self.session.pending_turn = False
            self.state = TurnState.IDLE
            await self._emit("loading", False)

    async def _run_turn(self, query: str) -> TurnOutcome:
        self.state = TurnState.AGGREGATING
        results = await self.aggregator.fetch_all(self.session.selected_source_ids)

        if not any(r.ok for r in results) and not self.call_backend_without_context:
            logger.info("No source returned data, skipping the AI call")
            self.state = TurnState.ERROR_APPLYING
            await self._append(Role.BOT, EmptyContextError().user_message, is_error=True)
            return TurnOutcome.NO_DATA

        self.state = TurnState.COMPOSING
        payload = self.composer.compose(query, results, self.template)

        self.state = TurnState.AWAITING_RESPONSE
        response = await self.gateway.send(payload)

        if isinstance(response, Failure):
            self.state = TurnState.ERROR_APPLYING
            await self._append(Role.BOT, GENERIC_ERROR_MESSAGE, is_error=True)
            return TurnOutcome.FAILED

        self.state = TurnState.APPLYING
        if isinstance(response, TextWithVisualization):
            definition = await self._prepare_chart(response.viz_spec)
            chart_ref = None
            if definition is not None:
                chart_ref = ChartHandle(chart_id=definition["chart_id"], chart_type=definition["chart_type"])
            # The chart is drawn into this message's container
            await self._append(Role.BOT, response.text, chart_ref=chart_ref)
            if definition is None or not await self._create_chart(definition):
                await self._append(Role.BOT, VisualizationError().user_message, is_error=True)
        elif isinstance(response, TextOnly):
            await self._append(Role.BOT, response.text)

        if self.session.speech_enabled:
            await self._speak(response.text)
        return TurnOutcome.ANSWERED

    async def _prepare_chart(self, viz_spec) -> Optional[Dict[str, Any]]:
        if self.session.active_chart is not None:
            previous = self.session.active_chart
            self.session.active_chart = None
            await self.dispatcher.destroy(previous)

        try:
            return self.dispatcher.prepare(viz_spec)
        except VisualizationError as e:
            logger.error(f"Chart omitted from answer: {e}")
            return None

    async def _create_chart(self, definition: Dict[str, Any]) -> bool:
        try:
            self.session.active_chart = await self.dispatcher.create(definition)
        except VisualizationError as e:
            logger.error(f"Chart omitted from answer: {e}")
            self.session.active_chart = None
            return False
        return True

    async def _speak(self, text: str):
        try:
            await self.speech.speak(text, replace=True)
        except (BusyError, UnsupportedFeatureError) as e:
            logger.warning(f"Answer not spoken: {e}")
            await self._emit("error", e.user_message)

    # ------------------------------------------------------------------
    # UI actions
    # ------------------------------------------------------------------

    async def toggle_speech(self) -> bool:
        self.session.speech_enabled = not self.session.speech_enabled
        if not self.session.speech_enabled and self.speech.state == SpeechState.SPEAKING:
            await self.speech.cancel()
        await self._emit_state()
        return self.session.speech_enabled

    async def toggle_voice_input(self) -> Optional[TurnOutcome]:
        """Start listening, or stop if already listening. A transcript is sent as the next query."""
        if self.speech.state == SpeechState.LISTENING:
            await self.speech.stop_voice_input()
            await self._emit_state()
            return None

        try:
            transcript = await self.speech.start_voice_input()
        except (BusyError, UnsupportedFeatureError) as e:
            logger.warning(f"Voice input rejected: {e}")
            await self._emit("error", e.user_message)
            return None
        await self._emit_state()

        if transcript is None:
            return None
        logger.info("Voice input recognized, sending as query")
        outcome = await self.send(transcript)
        if outcome == TurnOutcome.REJECTED_BUSY:
            await self._emit("notice", VOICE_QUERY_BUSY_NOTICE)
        return outcome

    async def copy_last(self) -> str:
        notice = await self.clipboard.copy_last(self.session.messages)
        await self._emit("notice", notice)
        return notice

    def on_selection_changed(self, source_ids: Iterable[str]):
        self.session.selected_source_ids = normalize_selection(source_ids)
        logger.info(f"Selected sources: {list(self.session.selected_source_ids)}")

    def clear_selection(self):
        # Through the channel so it cannot overtake an earlier queued change
        if self._selection_channel is not None:
            self._selection_channel.publish(())
        else:
            self.on_selection_changed(())

    def attach_selection_channel(self, channel: SelectionChannel):
        self._selection_channel = channel
        self._selection_task = asyncio.create_task(self._consume_selection(channel))

    async def _consume_selection(self, channel: SelectionChannel):
        async for selection in channel.updates():
            self.on_selection_changed(selection)

    async def _emit_state(self):
        await self._emit("state", {
            "speech_enabled": self.session.speech_enabled,
            "speech_state": self.speech.state.value,
            "selected_source_ids": list(self.session.selected_source_ids),
        })

    async def close(self):
        """Release everything the session owns. Called when the widget unmounts."""
        if self._selection_task is not None:
            self._selection_task.cancel()
            try:
                await self._selection_task
            except asyncio.CancelledError:
                pass
            self._selection_task = None

        await self.speech.close()

        if self.session.active_chart is not None:
            chart = self.session.active_chart
            self.session.active_chart = None
            await self.dispatcher.destroy(chart)
        logger.info("Chat session closed")
