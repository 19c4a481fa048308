from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from app.ai.types import AIClient, EmbeddingClient
from app.core.config import settings
from app.core.dependencies import get_embedder, get_generation_client
from app.core.errors import RunNotFoundError
from app.core.rate_limit import rate_limit
from app.core.security import check_api_key
from app.schemas.scorecard import Scorecard, ScoreRequest
from app.scoring.engine import ScorecardEngine
from app.store.runs import RunStore, get_run_store

router = APIRouter()


def _raise_not_found(exc: RunNotFoundError) -> None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post("/score", response_model=Scorecard)
@rate_limit(settings.score_rate_limit)
async def score_run(
    request: Request,
    payload: ScoreRequest,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    client: AIClient = Depends(get_generation_client),
    embedder: EmbeddingClient = Depends(get_embedder),
    store: RunStore = Depends(get_run_store),
):
    _ = request
    check_api_key(x_api_key)
    engine = ScorecardEngine(store, client, embedder)
    try:
        return await engine.compute(payload.run_id)
    except RunNotFoundError as exc:
        _raise_not_found(exc)
