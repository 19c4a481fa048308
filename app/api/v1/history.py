from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from app.core.config import settings
from app.core.security import check_api_key, resolve_owner_id
from app.schemas.optimization import RunSummary
from app.store.runs import RunStore, get_run_store

router = APIRouter()


def _not_found(run_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Optimization run '{run_id}' not found.",
    )


@router.get("/history", response_model=list[RunSummary])
async def list_history(
    limit: int | None = Query(default=None, ge=1, le=200),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    store: RunStore = Depends(get_run_store),
):
    check_api_key(x_api_key)
    return store.list_runs(resolve_owner_id(x_user_id), limit or settings.history_page_size)


@router.get("/history/{run_id}")
async def get_history_item(
    run_id: str,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    store: RunStore = Depends(get_run_store),
) -> dict[str, Any]:
    check_api_key(x_api_key)
    run = store.get_run(run_id)
    if run is None or run.owner_id != resolve_owner_id(x_user_id):
        raise _not_found(run_id)

    scorecard = store.get_scorecard(run_id)
    return {
        **run.completion_payload(),
        "createdAt": run.created_at.isoformat(),
        "jobDescription": run.job_description,
        "templateId": run.template_id,
        "fileName": run.file_name,
        "scorecard": scorecard.model_dump(mode="json", by_alias=True) if scorecard else None,
    }


@router.delete("/history/{run_id}")
async def delete_history_item(
    run_id: str,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    store: RunStore = Depends(get_run_store),
) -> dict[str, Any]:
    check_api_key(x_api_key)
    if not store.soft_delete_run(run_id, resolve_owner_id(x_user_id)):
        raise _not_found(run_id)
    return {"runId": run_id, "deleted": True}
