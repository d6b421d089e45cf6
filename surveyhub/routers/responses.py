from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from surveyhub.core.security.auth import get_current_principal, get_optional_principal
from surveyhub.core.security.principal import Principal
from surveyhub.crud.responses import get_response_repository
from surveyhub.db.session import get_db
from surveyhub.schemas.analytics import SurveyAnalytics
from surveyhub.schemas.response import ResponseCreate, ResponseCreated, ResponseRecord
from surveyhub.services.responses import ResponseService

router = APIRouter(tags=["Responses"])


def get_response_service(
    db: Session = Depends(get_db),
    responses=Depends(get_response_repository),
) -> ResponseService:
    return ResponseService(db, responses)


@router.post("/responses", response_model=ResponseCreated, status_code=status.HTTP_201_CREATED)
def submit_response(
    payload: ResponseCreate,
    principal: Optional[Principal] = Depends(get_optional_principal),
    service: ResponseService = Depends(get_response_service),
):
    record = service.submit_response(principal, payload)
    return ResponseCreated(message="Response submitted successfully", id=record.id, survey_id=record.survey_id)


@router.get("/surveys/{survey_id}/responses", response_model=List[ResponseRecord])
def list_responses(
    survey_id: int,
    principal: Principal = Depends(get_current_principal),
    service: ResponseService = Depends(get_response_service),
):
    return service.list_responses(principal, survey_id)


@router.get("/surveys/{survey_id}/analytics", response_model=SurveyAnalytics)
def get_survey_analytics(
    survey_id: int,
    principal: Principal = Depends(get_current_principal),
    service: ResponseService = Depends(get_response_service),
):
    return service.get_analytics(principal, survey_id)


@router.get("/surveys/{survey_id}/responses/export")
def export_responses(
    survey_id: int,
    principal: Principal = Depends(get_current_principal),
    service: ResponseService = Depends(get_response_service),
):
    csv_text, filename = service.export_csv(principal, survey_id)
    return Response(
        content=csv_text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
