# pizzeria_voice/http_routes.py
import logging
from typing import Any, Dict, Optional

import aiohttp
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from .agent_client import build_session_update
from .catalog import Catalog
from .errors import UpstreamHandshakeError
from .messages import Language
from .settings import Settings

log = logging.getLogger("http")
http_router = APIRouter()

# -------------------- Landing page --------------------

INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0"/>
  <title>🍕 Pizzeria Voice Relay</title>
  <style>
    :root { color-scheme: light dark; }
    * { box-sizing: border-box; }
    body { margin:0; font-family: system-ui, -apple-system, 'Segoe UI', Roboto, Arial, sans-serif;
           min-height:100vh; display:grid; place-items:center;
           background: linear-gradient(135deg, #f6893b 0%, #c0392b 100%); }
    .card { background: rgba(255,255,255,0.95); border-radius: 20px; padding: 32px; max-width: 900px; width: 94%;
            box-shadow: 0 18px 60px rgba(0,0,0,0.25); }
    h1 { margin: 0 0 8px; color:#2d3748; }
    p  { margin: 0 0 20px; color:#4a5568; }
    .grid { display:grid; gap:14px; grid-template-columns: repeat(auto-fit,minmax(240px,1fr)); margin-top: 12px; }
    .tile { padding:18px; border: 2px solid #e2e8f0; background:#fff; border-radius: 12px; text-decoration:none; display:block; }
    .t1 { font-weight:700; color:#2d3748; margin:0 0 6px; }
    .t2 { color:#718096; margin:0 0 10px; }
    code { background:#f7fafc; padding: 4px 6px; border-radius:6px; }
  </style>
</head>
<body>
  <div class="card">
    <h1>🍕 Pizzeria Voice Relay</h1>
    <p>Voice ordering over the OpenAI Realtime API</p>
    <div class="grid">
      <div class="tile">
        <div class="t1">🎙️ Relay socket</div>
        <div class="t2">Browser audio, text and cart function calls</div>
        <code>ws /ws</code>
      </div>
      <a class="tile" href="/api/menu">
        <div class="t1">📋 Menu</div>
        <div class="t2">Catalog document for the cart UI</div>
        <code>/api/menu</code>
      </a>
      <div class="tile">
        <div class="t1">🔑 Session token</div>
        <div class="t2">Ephemeral realtime session for direct browser connections</div>
        <code>POST /session</code>
      </div>
      <a class="tile" href="/health">
        <div class="t1">💚 Health</div>
        <div class="t2">Liveness and active sessions</div>
        <code>/health</code>
      </a>
    </div>
  </div>
</body>
</html>
"""


class SessionRequest(BaseModel):
    language: Language = "en"


@http_router.get("/")
def index():
    return HTMLResponse(INDEX_HTML)


@http_router.get("/health")
def health_check(request: Request):
    registry = request.app.state.registry
    return {"status": "ok", "sessions": len(registry)}


@http_router.get("/api/menu")
def menu(request: Request):
    catalog: Catalog = request.app.state.catalog
    return JSONResponse(catalog.data)


# -------------------- Session-token mode --------------------

async def create_realtime_session(settings: Settings, catalog: Optional[Catalog], language: str) -> Dict[str, Any]:
    """Provision an ephemeral realtime session the browser can use directly."""
    body = {"model": settings.realtime_model, **build_session_update(settings, catalog, language)["session"]}
    headers = {"Authorization": f"Bearer {settings.openai_api_key}", "Content-Type": "application/json"}
    timeout = aiohttp.ClientTimeout(total=30)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as http:
            async with http.post(settings.realtime_sessions_url, headers=headers, json=body) as resp:
                data = await resp.json(content_type=None)
                if resp.status >= 400:
                    raise UpstreamHandshakeError(f"session create failed ({resp.status}): {data}")
                return data
    except aiohttp.ClientError as e:
        raise UpstreamHandshakeError(f"session create failed: {e}") from e


@http_router.post("/session")
async def session_token(request: Request, req: Optional[SessionRequest] = None):
    req = req or SessionRequest()
    settings: Settings = request.app.state.settings
    try:
        data = await create_realtime_session(settings, request.app.state.catalog, req.language)
    except UpstreamHandshakeError as e:
        log.error(f"❌ {e}")
        raise HTTPException(502, str(e))
    log.info(f"🔑 Realtime session provisioned (language={req.language})")
    return {**data, "language": req.language}
