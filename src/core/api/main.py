"""
FastAPI Main Application

Entry point for running the command API server.
"""

from fastapi import FastAPI

from core.api import commands
from core.config import config
from core.logging_config import configure_package_loggers

configure_package_loggers(
    log_level=config.LOG_LEVEL,
    log_format=config.LOG_FORMAT,
    log_file=config.LOG_FILE,
)

# Create FastAPI app
app = FastAPI(
    title="Job Command API",
    description="Voice and text commands against job application records",
    version="1.0.0"
)

# Include routers
app.include_router(commands.router, tags=["commands"])


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
