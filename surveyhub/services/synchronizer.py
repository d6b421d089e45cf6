"""
Reconciles a survey's stored question/option tree with a submitted question list.

Everything runs inside one ``UnitOfWork``: either the whole new tree is
committed or the survey is left exactly as it was. Questions are matched by
id and updated in place; options carry no ids on the wire, so each
question's options are deleted and recreated from the submitted texts on
every pass (option ids are re-issued each time).
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List

from sqlalchemy.exc import SQLAlchemyError

from surveyhub.core.errors import NotFoundError, SurveyHubError, SynchronizationError, ValidationError
from surveyhub.core.security.principal import Principal, require_principal
from surveyhub.crud.surveys import SurveyRepository
from surveyhub.db.unit_of_work import UnitOfWork
from surveyhub.models.survey import Question, Survey
from surveyhub.schemas.survey import QuestionIn, SurveyCreate, SurveyFields

logger = logging.getLogger(__name__)

SCALAR_FIELDS = {"title", "description", "is_active", "start_date", "end_date"}


def question_entries(questions: Iterable[Question]) -> List[QuestionIn]:
    """Express a stored question list as a submitted one, ids included."""
    return [
        QuestionIn(
            id=question.id,
            text=question.text,
            type=question.type,
            required=question.required,
            options=[option.text for option in question.options],
        )
        for question in questions
    ]


def survey_fields(survey: Survey) -> SurveyFields:
    return SurveyFields(
        title=survey.title,
        description=survey.description,
        is_active=survey.is_active,
        start_date=survey.start_date,
        end_date=survey.end_date,
    )


@contextmanager
def storage_step(context: str):
    """Prefix ``context`` to domain errors and turn storage errors into ``SynchronizationError``."""
    try:
        yield
    except SurveyHubError as e:
        logger.error(f"Synchronization step FAILED ({context}): {e.detail}")
        raise e.wrap(context) from e
    except SQLAlchemyError as e:
        logger.error(f"Synchronization step FAILED ({context}): {str(e)}")
        raise SynchronizationError(f"{context}: {e}") from e


class SurveySynchronizer:
    def __init__(self, repository: SurveyRepository):
        self.repository = repository

    def create_survey(self, principal: Principal, payload: SurveyCreate) -> Survey:
        principal = require_principal(principal)
        logger.info(f"Creating survey '{payload.title}' with {len(payload.questions)} questions for user {principal.user_id}")

        with self.repository.begin_tx() as uow:
            with storage_step("creating survey"):
                survey = self.repository.create_survey_tx(uow, principal.user_id, self._scalar_fields(payload))
            survey_id = survey.id
            self._apply_questions(uow, survey_id, {}, payload.questions)
            uow.commit()

        logger.info(f"Survey {survey_id} created")
        return survey

    def synchronize(
        self,
        principal: Principal,
        survey: Survey,
        fields: SurveyFields,
        requested_questions: List[QuestionIn],
    ) -> Survey:
        """
        Apply ``fields`` and ``requested_questions`` to ``survey``.

        The caller must already hold an owner or admin grant for the survey.
        Position in ``requested_questions`` becomes the 1-based order; entries
        with an id update that question, entries without one create a question,
        and stored questions missing from the list are deleted.
        """
        principal = require_principal(principal)
        survey_id = survey.id
        logger.info(
            f"Synchronizing survey {survey_id} with {len(requested_questions)} questions "
            f"for user {principal.user_id}"
        )

        with self.repository.begin_tx() as uow:
            with storage_step("updating survey fields"):
                self.repository.update_survey_tx(uow, survey, self._scalar_fields(fields))

            with storage_step("loading current questions"):
                before = {question.id: question for question in self.repository.list_questions_tx(uow, survey_id)}

            retained = self._apply_questions(uow, survey_id, before, requested_questions)

            with storage_step("deleting removed questions"):
                deleted = self.repository.delete_questions_for_survey_except_tx(uow, survey_id, retained)

            uow.commit()

        logger.info(
            f"Survey {survey_id} synchronized: {len(retained)} questions, "
            f"{len(deleted)} removed"
        )
        return survey

    def _apply_questions(
        self,
        uow: UnitOfWork,
        survey_id: int,
        before: Dict[int, Question],
        requested_questions: List[QuestionIn],
    ) -> List[int]:
        retained: List[int] = []
        seen = set()
        for position, entry in enumerate(requested_questions, start=1):
            with storage_step(f"question #{position}"):
                if entry.id is not None:
                    if entry.id in seen:
                        raise ValidationError(f"question {entry.id} appears more than once")
                    question = before.get(entry.id)
                    if question is None:
                        raise NotFoundError(f"question {entry.id} does not belong to survey {survey_id}")
                    seen.add(entry.id)
                    self.repository.update_question_tx(
                        uow, question, entry.text, entry.type, entry.required, position
                    )
                else:
                    question = self.repository.create_question_tx(
                        uow, survey_id, entry.text, entry.type, entry.required, position
                    )
                retained.append(question.id)
                self._replace_options(uow, question.id, entry)
        return retained

    def _replace_options(self, uow: UnitOfWork, question_id: int, entry: QuestionIn) -> None:
        self.repository.delete_options_for_question_tx(uow, question_id)
        texts = entry.options
        if texts and not entry.type.has_options:
            logger.debug(f"Discarding {len(texts)} options sent for {entry.type.value} question {question_id}")
            texts = []
        for order_num, text in enumerate(texts, start=1):
            self.repository.create_option_tx(uow, question_id, text, order_num)

    @staticmethod
    def _scalar_fields(fields: SurveyFields) -> Dict[str, Any]:
        return fields.model_dump(include=SCALAR_FIELDS)
