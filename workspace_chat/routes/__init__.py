from fastapi import FastAPI
from .v1.chat import router as chat_router_v1

def register_routers(app: FastAPI):
    app.include_router(chat_router_v1, prefix="/v1/api/chat")
