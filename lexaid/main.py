"""FastAPI application entry point.

Startup sequence: load settings -> build completion client -> session registry.
"""

from contextlib import asynccontextmanager

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lexaid.api.routes import router
from lexaid.core.config import AppSettings, LLMConfig
from lexaid.core.conversation import SessionRegistry
from lexaid.core.extraction import ExtractionService
from lexaid.core.llm_adapter import CompletionClient

load_dotenv()

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("startup.begin")

    settings = AppSettings.from_env()
    app.state.settings = settings
    app.state.extraction = ExtractionService(settings)

    config = LLMConfig.from_env()
    try:
        client = CompletionClient(config)
        app.state.client = client
        app.state.sessions = SessionRegistry(client, document_limit=settings.document_context_chars)
        logger.info("startup.llm_initialized", provider=config.provider, model=config.model,
                    healthy=client.is_healthy())
    except Exception as e:
        app.state.client = None
        app.state.sessions = None
        logger.error("startup.llm_failed", error=str(e),
                     hint="Set LLM_PROVIDER and GROQ_API_KEY or CEREBRAS_API_KEY in .env")

    logger.info("startup.complete")
    yield
    logger.info("shutdown.complete")


app = FastAPI(
    title="LexAid API",
    description="Legal document analysis, drafting, research and Q&A assistant",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for the Streamlit frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
