from fastapi import APIRouter, Depends

from app.core.dependencies import get_parse_cache
from app.pipeline.cache import ParsedResumeCache

router = APIRouter()


@router.get("/health", summary="Health Check", description="Check the health status of the application.")
async def health_check(cache: ParsedResumeCache = Depends(get_parse_cache)):
    return {"status": "healthy", "parseCacheEntries": len(cache)}
