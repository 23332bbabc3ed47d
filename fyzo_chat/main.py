# fyzo_chat/main.py
import logging
import sys
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import create_async_engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from fyzo_chat.api import chats, realtime
from fyzo_chat.config import AppConfig
from fyzo_chat.domain.exceptions import ChatServiceError
from fyzo_chat.infrastructure.connection_registry import ConnectionRegistry
from fyzo_chat.infrastructure.database import create_database
from fyzo_chat.infrastructure.event_dispatcher import EventDispatcher
from fyzo_chat.infrastructure.event_handlers import EventHandlers
from fyzo_chat.infrastructure.redis_client import RedisClient
from fyzo_chat.infrastructure.schemas import ErrorResponse
from fyzo_chat.infrastructure.security import SecurityService


class Application:
    def __init__(self, config: AppConfig):
        self.config = config
        self.logger = self.setup_logger()
        engine = create_async_engine(config.DATABASE_URL, echo=False)
        self.database = create_database(engine)
        self.redis_client = RedisClient(
            config.REDIS_HOST, config.REDIS_PORT, self.logger
        )
        self.connection_registry = ConnectionRegistry(self.logger)
        self.event_dispatcher = EventDispatcher(self.logger)
        self.security_service = SecurityService(config)
        self.event_handlers = EventHandlers(
            self.connection_registry, self.redis_client, self.logger
        )

        self.event_dispatcher.register(
            "MessageCreated", self.event_handlers.publish_message_created
        )
        self.event_dispatcher.register(
            "MessagesRead", self.event_handlers.publish_messages_read
        )
        self.event_dispatcher.register(
            "MessageDeleted", self.event_handlers.publish_message_deleted
        )

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        await self.database.connect()
        await self.redis_client.connect()
        yield
        await self.database.disconnect()
        await self.redis_client.disconnect()

    def setup_logger(self):
        logger = logging.getLogger("FyzoChat")
        logger.setLevel(self.config.LOG_LEVEL.upper())

        if not logger.handlers:
            c_handler = logging.StreamHandler(sys.stdout)
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            c_handler.setFormatter(formatter)
            logger.addHandler(c_handler)

        return logger

    def create_app(self) -> FastAPI:
        app = FastAPI(
            title=self.config.PROJECT_NAME,
            version=self.config.PROJECT_VERSION,
            description=self.config.PROJECT_DESCRIPTION,
            openapi_url=f"{self.config.API_V1_STR}/openapi.json",
            lifespan=self.lifespan,
        )

        app.state.config = self.config
        app.state.security_service = self.security_service
        app.state.event_dispatcher = self.event_dispatcher
        app.state.connection_registry = self.connection_registry
        app.state.database = self.database
        app.state.logger = self.logger

        app.include_router(
            chats.router, prefix=f"{self.config.API_V1_STR}/chats", tags=["chats"]
        )
        app.include_router(
            realtime.router, prefix=self.config.API_V1_STR, tags=["realtime"]
        )

        @app.get("/")
        async def root():
            return {"message": "Welcome to the FYZO Chat API"}

        @app.get("/health")
        async def health():
            return {
                "success": True,
                "message": "Chat service is running",
                "database": await self.database.ping(),
                "redis": await self.redis_client.is_healthy(),
                "timestamp": datetime.now(UTC).isoformat(),
            }

        @app.exception_handler(ChatServiceError)
        async def chat_service_exception_handler(
            request: Request, exc: ChatServiceError
        ):
            return JSONResponse(
                status_code=exc.status_code,
                content=ErrorResponse(message=exc.message).model_dump(exclude_none=True),
            )

        @app.exception_handler(RequestValidationError)
        async def validation_exception_handler(
            request: Request, exc: RequestValidationError
        ):
            return JSONResponse(
                status_code=400,
                content=ErrorResponse(
                    message="Validation failed", errors=jsonable_encoder(exc.errors())
                ).model_dump(),
            )

        @app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(
            request: Request, exc: StarletteHTTPException
        ):
            return JSONResponse(
                status_code=exc.status_code,
                content=ErrorResponse(message=str(exc.detail)).model_dump(exclude_none=True),
                headers=getattr(exc, "headers", None),
            )

        @app.exception_handler(Exception)
        async def global_exception_handler(request: Request, exc: Exception):
            self.logger.exception(f"Unhandled error on {request.url.path}")
            return JSONResponse(
                status_code=500,
                content=ErrorResponse(
                    message=f"An unexpected error occurred: {str(exc)}"
                ).model_dump(exclude_none=True),
            )

        return app


def create():
    config = AppConfig()
    application = Application(config)
    app = application.create_app()
    application.logger.info("Application created and configured")

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create(), host="127.0.0.1", port=8000)
