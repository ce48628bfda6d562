from fastapi import APIRouter, Depends, status

from ...engine.service import SurveyService
from ...schemas import (
    CompleteSessionResponse,
    ProgressResponse,
    QuestionResponse,
    ResumeSessionResponse,
    StartSessionRequest,
    StartSessionResponse,
    SubmitResponseRequest,
    SubmitResponseResponse,
    SurveyOverview,
)
from .. import guidance
from ..deps import get_survey_service, get_tenant_id

router = APIRouter()


@router.post("", response_model=StartSessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    request: StartSessionRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: SurveyService = Depends(get_survey_service),
):
    result = await service.start_session(
        request.survey_id, request.participant_id, tenant_id, request.metadata
    )
    survey = result.survey
    return StartSessionResponse(
        session_id=result.session.session_id,
        survey=SurveyOverview(
            id=survey.id,
            title=survey.metadata.title,
            description=survey.metadata.description,
            total_questions=len(survey.questions),
            estimated_duration=survey.metadata.estimated_duration,
        ),
        all_questions=result.all_questions,
        next_suggested_questions=result.next_suggested_questions,
        guidance_for_llm=guidance.for_start(result),
    )


@router.get("/{session_id}/questions/{question_id}", response_model=QuestionResponse)
async def get_question(
    session_id: str,
    question_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: SurveyService = Depends(get_survey_service),
):
    question = await service.get_question(session_id, question_id, tenant_id)
    return QuestionResponse(question=question, guidance_for_llm=guidance.for_question(question))


@router.post("/{session_id}/responses", response_model=SubmitResponseResponse)
async def submit_response(
    session_id: str,
    request: SubmitResponseRequest,
    tenant_id: str = Depends(get_tenant_id),
    service: SurveyService = Depends(get_survey_service),
):
    result = await service.submit_response(session_id, request.question_id, request.value, tenant_id)
    return SubmitResponseResponse(**dict(result), guidance_for_llm=guidance.for_submit(result))


@router.get("/{session_id}/progress", response_model=ProgressResponse)
async def get_progress(
    session_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: SurveyService = Depends(get_survey_service),
):
    report = await service.get_progress(session_id, tenant_id)
    return ProgressResponse(**dict(report), guidance_for_llm=guidance.for_progress(report))


@router.post("/{session_id}/complete", response_model=CompleteSessionResponse)
async def complete_session(
    session_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: SurveyService = Depends(get_survey_service),
):
    result = await service.complete_session(session_id, tenant_id)
    return CompleteSessionResponse(**dict(result), guidance_for_llm=guidance.for_complete(result))


@router.post("/{session_id}/resume", response_model=ResumeSessionResponse)
async def resume_session(
    session_id: str,
    tenant_id: str = Depends(get_tenant_id),
    service: SurveyService = Depends(get_survey_service),
):
    result = await service.resume_session(session_id, tenant_id)
    return ResumeSessionResponse(**dict(result), guidance_for_llm=guidance.for_resume(result))
