from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from infinet_ai.config import get_settings
from infinet_ai.logging_config import setup_logging
from infinet_ai.routers import chat, media, whatsapp
from infinet_ai.services.llm import Capability
from infinet_ai.services.runtime import Runtime, get_runtime

settings = get_settings()
setup_logging(settings.log_level)

app = FastAPI(
    title="InfiNet AI Gateway",
    description="Chat, voice and image generation for the InfiNet website and WhatsApp",
    version="0.1.0",
    debug=settings.debug,
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router)
app.include_router(media.router)
app.include_router(whatsapp.router)


@app.get("/")
async def root():
    return {"status": "ok", "service": "infinet-ai"}


@app.get("/api/health")
async def health(runtime: Runtime = Depends(get_runtime)):
    """Which capabilities have at least one configured provider."""
    providers = runtime.pool.summary()
    capabilities = {capability.value: runtime.pool.is_enabled(capability) for capability in Capability}
    return {
        "status": "ok" if capabilities[Capability.CHAT.value] else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "capabilities": capabilities,
        "providers": providers,
        "speech": {
            "transcription": runtime.speech.can_transcribe,
            "synthesis": runtime.speech.can_synthesize,
        },
        "whatsapp_gateway": runtime.whatsapp.configured,
        "session_backend": runtime.settings.session_backend,
    }
