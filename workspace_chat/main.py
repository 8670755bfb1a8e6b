from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from workspace_chat.config.settings import settings
from workspace_chat.config.logger import logger
from workspace_chat.routes import register_routers
from contextlib import asynccontextmanager


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Chat service starting, AI endpoint: {settings.AI_ENDPOINT} ({settings.AI_REQUEST_PROFILE} profile)")
        yield
        logger.info("Chat service stopped")

    app = FastAPI(lifespan=lifespan)

    allowed_origins = [origin.strip() for origin in settings.FRONTEND_ORIGIN.split(",")]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    register_routers(app)

    @app.get("/")
    async def home():
        logger.info("Home route accessed")
        return {"message": "Welcome to the API"}

    @app.get("/health")
    async def health():
        logger.info("Health check accessed")
        return {"status": "healthy"}

    @app.middleware("http")
    async def catch_json_errors(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error: {str(e)}")
            return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    return app
