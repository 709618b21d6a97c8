"""
Word category endpoints
词汇类别端点
"""

from typing import List
from fastapi import APIRouter, Depends

from chameleon.api.v1.endpoints.rooms import get_orchestrator
from chameleon.services.orchestrator import RoundOrchestrator

router = APIRouter()


@router.get("", response_model=List[str])
async def list_categories(orchestrator: RoundOrchestrator = Depends(get_orchestrator)):
    """可选择的词汇类别"""
    return orchestrator.list_categories()
