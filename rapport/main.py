"""Main FastAPI application."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rapport import __version__
from rapport.api.endpoints import router
from rapport.services.conversation import get_conversation_service
from rapport.services.persistence import crm_store, seed_demo_data
from rapport.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()

    demo_owner = os.getenv("RAPPORT_DEMO_DATA")
    if demo_owner:
        await seed_demo_data(crm_store, demo_owner)
        logger.info(f"Seeded demo CRM data for owner {demo_owner}")

    yield

    await get_conversation_service().aclose()


app = FastAPI(
    title="Rapport CRM Assistant",
    description=(
        "A conversational AI assistant for a personal CRM. The assistant searches and updates "
        "contacts, interactions and tasks through tool calls to OpenAI or Gemini models."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Conversation",
            "description": "Conversational turns with the CRM assistant, including turn cancellation.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("rapport.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
