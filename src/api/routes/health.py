from fastapi import APIRouter
from src.core.config import QAConfig, settings
from src.services.client_factory import get_client_factory

router = APIRouter()

@router.get("/")
async def root():
    """Basic health check endpoint."""
    return {"message": "Question QA Pipeline API", "status": "healthy"}

@router.get("/health")
async def health_check():
    """
    Comprehensive health check endpoint.

    Verifies:
    - Credentials for the generator providers (Groq, OpenAI)
    - That the selected provider is configured
    - QA thresholds in effect
    """
    health_status = {
        "status": "healthy",
        "service": "Question QA Pipeline",
        "version": "1.0",
    }

    providers = get_client_factory().configured_providers()
    config = QAConfig.from_settings()
    health_status.update({
        "generator_provider": settings.GENERATOR_PROVIDER,
        "groq_configured": providers["groq"],
        "openai_configured": providers["openai"],
        "qa": {
            "batch_size": config.batch_size,
            "max_attempts": config.max_attempts,
            "similarity_threshold": config.similarity_threshold,
            "max_run": config.max_run,
            "min_score": config.min_score,
            "strict_option_justification": config.strict_option_justification,
        },
    })

    # Overall status
    if not providers.get(settings.GENERATOR_PROVIDER.lower(), False):
        health_status["status"] = "degraded"
        health_status["warning"] = f"Generator provider '{settings.GENERATOR_PROVIDER}' not configured"

    return health_status
