from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from space_together.core.dependencies import get_main_db
from space_together.core.logging import logger

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(db=Depends(get_main_db)):
    """Liveness plus a round trip to the control-plane database"""
    try:
        await db.command("ping")
    except PyMongoError as e:
        logger.error(f"Health check failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "degraded", "database": "unreachable"}
        )
    return {"status": "ok", "database": "connected"}
