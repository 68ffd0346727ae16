from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from schemas.rate_plan import ApprovalLevelResponse
from services.approval_levels import list_levels

router = APIRouter(prefix="/api/approval-levels", tags=["approval-levels"])


@router.get("", response_model=list[ApprovalLevelResponse])
async def list_approval_levels(active_only: bool = True, db: AsyncSession = Depends(get_db)):
    return [ApprovalLevelResponse.model_validate(lv) for lv in await list_levels(db, active_only)]
