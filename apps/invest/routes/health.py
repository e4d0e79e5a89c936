from fastapi import APIRouter
from fastapi.responses import JSONResponse

from apps.invest.redis_client import redis_health_check

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint to verify API is running"""
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "service": "invest-api",
            "version": "1.0.0"
        }
    )


@router.get("/health/redis")
async def redis_health():
    """Report whether the processing queue backend is reachable"""
    healthy = await redis_health_check()
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "healthy" if healthy else "unavailable", "service": "redis"}
    )
