#!/usr/bin/env python
"""FastAPI server for the slidecast HTTP interface."""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add src directory to Python path for imports
src_dir = Path(__file__).parent.parent
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import close_video_agent
from api.routers import core, process
from utils.config import load_config
from utils.logging import setup_logging

_config = load_config()
setup_logging(_config["log_level"], json_output=_config["log_json"])
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info("Slidecast API starting")
    yield
    await close_video_agent()
    logger.info("Slidecast API stopped")


app = FastAPI(title="Slidecast API", version="1.0.0", lifespan=lifespan)

# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(core.router)
app.include_router(process.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Report unexpected failures in the same shape as pipeline failures."""
    logger.exception(f"Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": str(exc) or type(exc).__name__, "stage": None},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=_config["api_host"], port=_config["api_port"])
