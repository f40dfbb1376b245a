"""Slidecast API launcher.

Imports ``api.server`` and serves it with uvicorn. If the import fails
(broken install, bad ``.env`` value), a stand-in app is served whose health
check reports the traceback instead of the process crash-looping.
"""
import os
import sys
import traceback

port = int(os.environ.get("PORT", os.environ.get("API_PORT", "8000")))
host = os.environ.get("API_HOST", "0.0.0.0")
log_level = os.environ.get("LOG_LEVEL", "info").lower()
import_error = None

# api, services, utils and video_agent are top-level packages under src/
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "src"))

try:
    from api.server import app
    print("[start.py] Slidecast API imported", flush=True)
except Exception as e:
    import_error = f"{type(e).__name__}: {e}\n{traceback.format_exc()}"
    print(f"[start.py] IMPORT FAILED: {import_error}", flush=True)
    from fastapi import FastAPI
    from fastapi.responses import JSONResponse

    app = FastAPI(title="Slidecast API (import failed)")
    err_msg = import_error

    @app.get("/api/health")
    async def health():
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "youtubeConfigured": False, "error": err_msg},
        )

    @app.post("/api/process")
    async def process():
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": "Server failed to start", "stage": None},
        )

import uvicorn
print(f"[start.py] Starting on {host}:{port}", flush=True)
uvicorn.run(app, host=host, port=port, log_level=log_level)
