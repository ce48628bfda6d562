from typing import List

from fastapi import APIRouter, Depends

from ...engine.service import SurveyService
from ...schemas import SurveySummary
from ..deps import get_survey_service, get_tenant_id

router = APIRouter()


@router.get("", response_model=List[SurveySummary])
async def list_available_surveys(
    tenant_id: str = Depends(get_tenant_id),
    service: SurveyService = Depends(get_survey_service),
):
    return await service.list_available_surveys(tenant_id)
