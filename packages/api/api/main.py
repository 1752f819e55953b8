"""FastAPI application entry point."""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatbot.ChatBot import DEFAULT_MODEL, ChatBot
from database.DatabaseProvider import DatabaseProvider
from gate.ReadDataTool import ReadDataTool

from api.routes import router

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging from ``LOG_LEVEL`` (default INFO)."""
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Set up and tear down application-wide resources."""
    load_dotenv()
    configure_logging()

    provider = DatabaseProvider.from_environment()
    app.state.tool = ReadDataTool(provider.create_executor())

    openai_key = os.environ.get("OPENAI_API_KEY")
    if openai_key:
        app.state.bot = ChatBot(
            app.state.tool,
            openai_key,
            model=os.environ.get("OPENAI_MODEL", DEFAULT_MODEL),
        )
    else:
        logger.info("OPENAI_API_KEY not set; chat endpoints are disabled")
        app.state.bot = None

    yield

    provider.close()


app = FastAPI(
    title="Read Gate API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[
        "X-RateLimit-Limit",
        "X-RateLimit-Remaining",
        "X-RateLimit-Reset",
    ],
)

app.include_router(router)


def serve() -> None:
    """Start the uvicorn server using environment configuration."""
    load_dotenv()
    host = os.environ.get("API_HOST", "0.0.0.0")
    port = int(os.environ.get("API_PORT", "3000"))
    uvicorn.run("api.main:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    serve()
