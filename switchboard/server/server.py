"""HTTP API server"""

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from switchboard.provider.base import (
    ChatMessage,
    CheckpointCounters,
    EffortLevel,
    MessageRole,
    QueryOptions,
    Resumable,
    StatelessHistory,
)
from switchboard.provider.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class HistoryMessage(BaseModel):
    role: MessageRole
    content: str
    images: list[str] = Field(default_factory=list)


class ChatRequest(BaseModel):
    message: str
    system_prompt: str | None = None
    session_id: str | None = None
    history: list[HistoryMessage] = Field(default_factory=list)
    working_dir: str | None = None
    effort: EffortLevel = "high"
    message_count: int | None = None
    tool_use_count: int | None = None

    def to_options(self, cancel: asyncio.Event) -> QueryOptions:
        if self.session_id:
            continuation = Resumable(self.session_id)
        else:
            continuation = StatelessHistory(tuple(
                ChatMessage(role=m.role, content=m.content, images=list(m.images))
                for m in self.history
            ))

        checkpoint = None
        if self.message_count is not None or self.tool_use_count is not None:
            checkpoint = CheckpointCounters(
                message_count=self.message_count or 0,
                tool_use_count=self.tool_use_count or 0,
            )

        return QueryOptions(
            prompt=self.message,
            system_prompt=self.system_prompt,
            continuation=continuation,
            working_dir=Path(self.working_dir) if self.working_dir else None,
            effort=self.effort,
            cancel=cancel,
            checkpoint=checkpoint,
        )


def create_app(registry: ProviderRegistry) -> FastAPI:
    app = FastAPI(title="switchboard", version="0.1.0")
    app.state.registry = registry

    @app.get("/health")
    async def health():
        return {"status": "ok", "active": registry.active_key}

    @app.get("/providers")
    async def providers():
        return [asdict(listing) for listing in registry.list_all()]

    @app.post("/providers/{key}/activate")
    async def activate(key: str):
        if not registry.switch_to(key):
            raise HTTPException(status_code=404, detail=f"Unknown provider: {key}")
        return {"active": registry.active_key}

    @app.post("/providers/reset")
    async def reset():
        registry.reset_to_default()
        return {"active": registry.active_key}

    @app.post("/chat")
    async def chat(body: ChatRequest, request: Request):
        cancel = asyncio.Event()
        options = body.to_options(cancel)

        async def stream():
            try:
                async for chunk in registry.query_with_fallback(options):
                    if await request.is_disconnected():
                        cancel.set()
                    yield json.dumps(chunk.to_dict()) + "\n"
            finally:
                cancel.set()

        return StreamingResponse(stream(), media_type="application/x-ndjson")

    return app


def start_server(registry: ProviderRegistry, host: str = "127.0.0.1", port: int = 4096):
    import uvicorn

    logger.info(f"Serving on http://{host}:{port}")
    uvicorn.run(create_app(registry), host=host, port=port)
