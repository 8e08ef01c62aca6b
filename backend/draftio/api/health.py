from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from draftio.db.database import get_db
from draftio.core.config import logger

router = APIRouter()


@router.get('/health')
def health():
    return {"status": "ok", "service": "chat-service"}


@router.get('/readyz')
async def readyz(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text('SELECT 1'))
    except Exception:
        logger.exception('Readiness DB check failed')
        raise HTTPException(status_code=503, detail='Not ready')
    return {"status": "ready"}
