from fastapi import APIRouter, WebSocket
from workspace_chat.controllers import chat_controller
from workspace_chat.config.logger import logger

router = APIRouter()

@router.get("/")
async def hello_chat():
    logger.info("Chat route accessed")
    return {
        "status": "success",
        "message": "User can send chat."
        }

@router.websocket("/ws")
async def chat_socket(websocket: WebSocket):
    return await chat_controller.websocket_endpoint(websocket)
