from fastapi import FastAPI

from app.config import settings
from app.logging_config import get_logger, setup_logging
from app.routers import webhook
from app.services.conversation_service import shutdown_conversation_service
from app.services.questionnaire import get_questionnaire

setup_logging(settings.log_level)

app = FastAPI(
    title="Rental Helper Bot",
    description="Messenger webhook that searches rental listings through a short questionnaire",
    version="0.1.0",
    debug=settings.debug,
)

app.include_router(webhook.router)

logger = get_logger("main")


@app.on_event("startup")
async def load_questionnaire() -> None:
    questionnaire = get_questionnaire()
    logger.info("Startup complete", extra={"context": {"fields": questionnaire.fields}})


@app.on_event("shutdown")
async def stop_conversations() -> None:
    await shutdown_conversation_service()


@app.get("/health")
async def health():
    return {"status": "ok"}
