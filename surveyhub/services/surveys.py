import logging
from typing import List

from sqlalchemy.orm import Session

from surveyhub.core.errors import NotFoundError, ValidationError
from surveyhub.core.security.principal import Principal, require_principal
from surveyhub.crud.surveys import SurveyRepository
from surveyhub.models.survey import Survey
from surveyhub.schemas.survey import (
    QuestionIn,
    QuestionRead,
    SurveyCreate,
    SurveyDetail,
    SurveyRead,
    SurveyUpdate,
)
from surveyhub.services.authorization import AccessMode, AuthorizationGate
from surveyhub.services.synchronizer import (
    SurveySynchronizer,
    question_entries,
    storage_step,
    survey_fields,
)

logger = logging.getLogger(__name__)


class SurveyService:
    """
    Survey authoring on top of the gate and the synchronizer.

    Every structural edit, including adding or removing a single question, is
    expressed as a full synchronization so question order stays dense.
    """

    def __init__(self, db: Session):
        self.repository = SurveyRepository(db)
        self.gate = AuthorizationGate(self.repository)
        self.synchronizer = SurveySynchronizer(self.repository)

    def create_survey(self, principal: Principal, payload: SurveyCreate) -> SurveyDetail:
        survey = self.synchronizer.create_survey(principal, payload)
        return self._detail(survey)

    def list_surveys(self, principal: Principal) -> List[SurveyRead]:
        principal = require_principal(principal)
        if principal.is_admin:
            surveys = self.repository.list_surveys()
        else:
            surveys = self.repository.list_surveys(creator_id=principal.user_id, include_active=True)
        return [SurveyRead.model_validate(survey) for survey in surveys]

    def list_my_surveys(self, principal: Principal) -> List[SurveyRead]:
        principal = require_principal(principal)
        surveys = self.repository.list_surveys(creator_id=principal.user_id)
        return [SurveyRead.model_validate(survey) for survey in surveys]

    def get_survey(self, principal: Principal, survey_id: int) -> SurveyDetail:
        grant = self.gate.authorize(principal, survey_id, AccessMode.READ)
        return self._detail(grant.survey)

    def update_survey(self, principal: Principal, survey_id: int, payload: SurveyUpdate) -> SurveyDetail:
        grant = self.gate.authorize(principal, survey_id, AccessMode.WRITE)
        survey = self.synchronizer.synchronize(principal, grant.survey, payload, payload.questions)
        return self._detail(survey)

    def update_status(self, principal: Principal, survey_id: int, is_active: bool) -> SurveyDetail:
        grant = self.gate.authorize(principal, survey_id, AccessMode.WRITE)
        with self.repository.begin_tx() as uow:
            with storage_step("updating survey status"):
                self.repository.update_survey_tx(uow, grant.survey, {"is_active": is_active})
            uow.commit()
        logger.info(f"Survey {survey_id} is now {'active' if is_active else 'inactive'}")
        return self._detail(grant.survey)

    def delete_survey(self, principal: Principal, survey_id: int) -> None:
        grant = self.gate.authorize(principal, survey_id, AccessMode.WRITE)
        with self.repository.begin_tx() as uow:
            with storage_step("deleting survey"):
                self.repository.delete_survey_tx(uow, grant.survey)
            uow.commit()
        logger.info(f"Survey {survey_id} deleted by user {principal.user_id}")

    def add_question(self, principal: Principal, survey_id: int, question: QuestionIn) -> QuestionRead:
        if question.id is not None:
            raise ValidationError("a new question must not carry an id")
        grant = self.gate.authorize(principal, survey_id, AccessMode.WRITE)
        survey = grant.survey

        entries = question_entries(self.repository.list_questions(survey_id))
        entries.append(question)
        self.synchronizer.synchronize(principal, survey, survey_fields(survey), entries)

        # Appended entries always land last
        added = self.repository.list_questions(survey_id)[-1]
        return QuestionRead.model_validate(added)

    def update_question(self, principal: Principal, question_id: int, question: QuestionIn) -> QuestionRead:
        """Edit one question in place; its position is kept and its options are replaced."""
        principal = require_principal(principal)
        if question.id is not None and question.id != question_id:
            raise ValidationError(f"body id {question.id} does not match question {question_id}")
        stored = self.repository.get_question(question_id)
        if stored is None:
            raise NotFoundError(f"Question {question_id} not found")
        grant = self.gate.authorize(principal, stored.survey_id, AccessMode.WRITE)
        survey = grant.survey

        entries = [
            question.model_copy(update={"id": question_id}) if entry.id == question_id else entry
            for entry in question_entries(self.repository.list_questions(survey.id))
        ]
        self.synchronizer.synchronize(principal, survey, survey_fields(survey), entries)
        return QuestionRead.model_validate(self.repository.get_question(question_id))

    def delete_question(self, principal: Principal, question_id: int) -> None:
        principal = require_principal(principal)
        question = self.repository.get_question(question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} not found")
        grant = self.gate.authorize(principal, question.survey_id, AccessMode.WRITE)
        survey = grant.survey

        entries = [
            entry for entry in question_entries(self.repository.list_questions(survey.id))
            if entry.id != question_id
        ]
        self.synchronizer.synchronize(principal, survey, survey_fields(survey), entries)

    @staticmethod
    def _detail(survey: Survey) -> SurveyDetail:
        return SurveyDetail.model_validate(survey)
