from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.database import get_async_session
from app.services.product_service import product_service
import structlog

logger = structlog.get_logger()

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("", response_model=List[str])
async def get_categories(db: AsyncSession = Depends(get_async_session)):
    """Distinct product categories, alphabetically"""
    try:
        return await product_service.get_categories(db)
    except Exception as e:
        logger.error("Failed to fetch categories", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch categories"
        )
