import asyncio
import logging

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import StreamingResponse

from app.ai.config import load_ai_config
from app.ai.types import AIClient
from app.core.config import settings
from app.core.dependencies import get_generation_client, get_parse_cache
from app.core.rate_limit import rate_limit
from app.core.security import check_api_key, resolve_owner_id
from app.pipeline.cache import ParsedResumeCache
from app.pipeline.orchestrator import OptimizationOrchestrator
from app.schemas.optimization import OptimizeRequest
from app.store.runs import RunStore, get_run_store
from app.streaming.emitter import NDJSON_MEDIA_TYPE, ProgressStreamEmitter, QueueSink

logger = logging.getLogger(__name__)

router = APIRouter()

# Runs keep going after a client disconnects; hold references until they finish.
_active_runs: set[asyncio.Task] = set()


@router.post("/optimize-resume")
@rate_limit(settings.optimize_rate_limit)
async def optimize_resume(
    request: Request,
    payload: OptimizeRequest,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    client: AIClient = Depends(get_generation_client),
    store: RunStore = Depends(get_run_store),
    cache: ParsedResumeCache = Depends(get_parse_cache),
):
    _ = request
    check_api_key(x_api_key)
    owner_id = resolve_owner_id(x_user_id)

    sink = QueueSink()
    emitter = ProgressStreamEmitter(sink)
    orchestrator = OptimizationOrchestrator(client, store, cache, ai_model=load_ai_config().model)

    task = asyncio.create_task(orchestrator.run(payload, owner_id, emitter))
    _active_runs.add(task)
    task.add_done_callback(_active_runs.discard)

    return StreamingResponse(
        sink.iter_lines(),
        media_type=NDJSON_MEDIA_TYPE,
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
