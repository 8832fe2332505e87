"""
FastAPI application for generating and validating exam questions.
Generated batches are deduplicated, grounded, citation-checked and rebalanced.
"""
from fastapi import FastAPI
import logging

from src.api.routes import health, questions
from src.core.logging import setup_logging
from src.core.middleware import RequestIDMiddleware

# Configure logging
setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Question QA Pipeline",
    description="API for generating exam questions and enforcing their quality contracts",
    version="1.0.0"
)

# Middleware
app.add_middleware(RequestIDMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(questions.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, workers=1)
