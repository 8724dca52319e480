from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from continuum.core.db import get_db
from continuum.core.errors import StorageFailure
from continuum.db.unit_of_work import UnitOfWork

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    """Проверка доступности сервиса и базы данных"""
    try:
        async with UnitOfWork(db):
            await db.execute(text("SELECT 1"))
    except StorageFailure:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "degraded", "database": "unavailable"}
        )
    return {"status": "ok", "database": "ok"}
