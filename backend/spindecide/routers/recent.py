from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from spindecide.database import get_db
from spindecide.services.recent_service import RecentDecisionsService
from spindecide.schemas.room import RecentDecisionResponse

router = APIRouter(prefix="/api/recent", tags=["Recent"])


@router.get("", response_model=list[RecentDecisionResponse])
async def get_recent_decisions(db: Annotated[AsyncSession, Depends(get_db)]):
    """Latest decided rooms with their winners"""
    decisions = await RecentDecisionsService(db).get_recent_decisions()
    return [RecentDecisionResponse.model_validate(d) for d in decisions]
