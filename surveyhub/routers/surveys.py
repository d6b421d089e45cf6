from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from surveyhub.core.security.auth import get_current_principal
from surveyhub.core.security.principal import Principal
from surveyhub.db.session import get_db
from surveyhub.schemas.survey import (
    QuestionIn,
    QuestionRead,
    SurveyCreate,
    SurveyDetail,
    SurveyRead,
    SurveyStatusUpdate,
    SurveyUpdate,
)
from surveyhub.services.surveys import SurveyService

router = APIRouter(
    prefix="/surveys",
    tags=["Surveys"]
)

questions_router = APIRouter(
    prefix="/questions",
    tags=["Surveys"]
)


def get_survey_service(db: Session = Depends(get_db)) -> SurveyService:
    return SurveyService(db)


@router.post("", response_model=SurveyDetail, status_code=status.HTTP_201_CREATED)
def create_survey(
    payload: SurveyCreate,
    principal: Principal = Depends(get_current_principal),
    service: SurveyService = Depends(get_survey_service),
):
    return service.create_survey(principal, payload)


@router.get("", response_model=List[SurveyRead])
def list_surveys(
    principal: Principal = Depends(get_current_principal),
    service: SurveyService = Depends(get_survey_service),
):
    return service.list_surveys(principal)


@router.get("/me", response_model=List[SurveyRead])
def list_my_surveys(
    principal: Principal = Depends(get_current_principal),
    service: SurveyService = Depends(get_survey_service),
):
    return service.list_my_surveys(principal)


@router.get("/{survey_id}", response_model=SurveyDetail)
def get_survey(
    survey_id: int,
    principal: Principal = Depends(get_current_principal),
    service: SurveyService = Depends(get_survey_service),
):
    return service.get_survey(principal, survey_id)


@router.put("/{survey_id}", response_model=SurveyDetail)
def update_survey(
    survey_id: int,
    payload: SurveyUpdate,
    principal: Principal = Depends(get_current_principal),
    service: SurveyService = Depends(get_survey_service),
):
    return service.update_survey(principal, survey_id, payload)


@router.patch("/{survey_id}/status", response_model=SurveyDetail)
def update_survey_status(
    survey_id: int,
    payload: SurveyStatusUpdate,
    principal: Principal = Depends(get_current_principal),
    service: SurveyService = Depends(get_survey_service),
):
    return service.update_status(principal, survey_id, payload.is_active)


@router.delete("/{survey_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_survey(
    survey_id: int,
    principal: Principal = Depends(get_current_principal),
    service: SurveyService = Depends(get_survey_service),
):
    service.delete_survey(principal, survey_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{survey_id}/questions", response_model=QuestionRead, status_code=status.HTTP_201_CREATED)
def add_question(
    survey_id: int,
    payload: QuestionIn,
    principal: Principal = Depends(get_current_principal),
    service: SurveyService = Depends(get_survey_service),
):
    return service.add_question(principal, survey_id, payload)


@questions_router.put("/{question_id}", response_model=QuestionRead)
def update_question(
    question_id: int,
    payload: QuestionIn,
    principal: Principal = Depends(get_current_principal),
    service: SurveyService = Depends(get_survey_service),
):
    return service.update_question(principal, question_id, payload)


@questions_router.delete("/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_question(
    question_id: int,
    principal: Principal = Depends(get_current_principal),
    service: SurveyService = Depends(get_survey_service),
):
    service.delete_question(principal, question_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
