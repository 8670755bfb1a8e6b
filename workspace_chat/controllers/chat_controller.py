import asyncio
import json
from typing import Set

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from workspace_chat.ai.reasoning_gateway import ReasoningGateway
from workspace_chat.config.integration_config.host_data_api import HostDataApi
from workspace_chat.config.logger import get_logger
from workspace_chat.config.settings import settings
from workspace_chat.controllers.session_orchestrator import SessionOrchestrator
from workspace_chat.helper.clipboard_notifier import ClipboardNotifier
from workspace_chat.helper.data_aggregator import DataAggregator
from workspace_chat.helper.request_composer import RequestComposer
from workspace_chat.helper.speech_controller import SpeechController
from workspace_chat.helper.visualization_dispatcher import VisualizationDispatcher
from workspace_chat.schemas.socket_schema import ClientAction
from workspace_chat.utils.selection_channel import SelectionChannel
from workspace_chat.utils.socket_bridge import SocketBridge

logger = get_logger("API Logger")


def create_orchestrator(bridge: SocketBridge) -> SessionOrchestrator:
    """Wire one widget session to the configured backends and to its socket."""
    return SessionOrchestrator(
        aggregator=DataAggregator(HostDataApi(), timeout_seconds=settings.SOURCE_FETCH_TIMEOUT_SECONDS),
        composer=RequestComposer(model=settings.AI_MODEL),
        gateway=ReasoningGateway(),
        dispatcher=VisualizationDispatcher(bridge),
        speech=SpeechController(bridge, lang=settings.DEFAULT_VOICE),
        clipboard=ClipboardNotifier(bridge),
        call_backend_without_context=settings.CALL_BACKEND_WITHOUT_CONTEXT,
        notifier=bridge.send,
    )


async def close_orchestrator(orchestrator: SessionOrchestrator):
    await orchestrator.close()
    await orchestrator.gateway.aclose()
    data_api = orchestrator.aggregator.data_api
    if hasattr(data_api, "aclose"):
        await data_api.aclose()


async def handle_client_action(
    action: ClientAction,
    orchestrator: SessionOrchestrator,
    bridge: SocketBridge,
    channel: SelectionChannel,
    tasks: Set[asyncio.Task],
):
    def spawn(coro):
        # Long running actions must not block the receive loop
        task = asyncio.create_task(coro)
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    if action.action == "send":
        spawn(orchestrator.send(action.query or ""))
    elif action.action == "toggle_voice_input":
        spawn(orchestrator.toggle_voice_input())
    elif action.action == "toggle_speech":
        await orchestrator.toggle_speech()
    elif action.action == "copy_last":
        await orchestrator.copy_last()
    elif action.action == "clear_selection":
        orchestrator.clear_selection()
    elif action.action == "selection_changed":
        channel.publish(action.source_ids or [])
    elif action.action == "capabilities":
        bridge.set_capabilities(action.speech_synthesis, action.speech_recognition)
    elif action.action == "speech_ended":
        bridge.speech_ended(action.utterance_id)
    elif action.action == "recognition_result":
        bridge.recognition_result(action.text)
    elif action.action == "recognition_error":
        bridge.recognition_failed(action.error)


async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    logger.info("Chat widget connected")

    bridge = SocketBridge(websocket)
    orchestrator = create_orchestrator(bridge)
    channel = SelectionChannel()
    orchestrator.attach_selection_channel(channel)
    tasks: Set[asyncio.Task] = set()

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                action = ClientAction.model_validate(json.loads(raw))
            except (ValueError, ValidationError) as e:
                logger.warning(f"Invalid client event: {e}")
                await bridge.send("error", "Invalid action.")
                continue
            await handle_client_action(action, orchestrator, bridge, channel, tasks)
    except WebSocketDisconnect:
        logger.info("Chat widget disconnected")
    except Exception as e:
        logger.error(f"WebSocket Error: {e}")
    finally:
        bridge.release()
        for task in list(tasks):
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await close_orchestrator(orchestrator)
