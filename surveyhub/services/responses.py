import csv
import io
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from surveyhub.core.errors import NotFoundError, ValidationError
from surveyhub.core.security.principal import Principal, require_principal
from surveyhub.crud.surveys import SurveyRepository
from surveyhub.models.survey import QuestionType
from surveyhub.schemas.analytics import SurveyAnalytics
from surveyhub.schemas.response import AnswerIn, ResponseCreate, ResponseRecord
from surveyhub.schemas.survey import SurveyDetail
from surveyhub.services.analytics import aggregate, coerce_scale_value
from surveyhub.services.authorization import AccessMode, AuthorizationGate
from surveyhub.utils.helpers import as_utc, get_utc_now, window_state

logger = logging.getLogger(__name__)

CSV_FIXED_HEADERS = ["ResponseID", "SubmittedAt", "UserID"]
CHECKBOX_SEPARATOR = "; "


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, list):
        return len(value) == 0
    return False


def _value_fits(question_type: QuestionType, value: Any) -> bool:
    if question_type is QuestionType.CHECKBOX:
        return isinstance(value, list) and all(isinstance(item, str) for item in value)
    if question_type is QuestionType.LINEAR_SCALE:
        return coerce_scale_value(value) is not None
    return isinstance(value, str)


def validate_answers(questions, answers: Sequence[AnswerIn]) -> List[Dict[str, Any]]:
    """
    Check submitted answers against the survey's questions and return them in
    storage form. Blank answers are dropped; a blank answer to a required
    question is rejected.
    """
    by_id = {question.id: question for question in questions}
    seen = set()
    cleaned = []
    for answer in answers:
        question = by_id.get(answer.question_id)
        if question is None:
            raise ValidationError(f"question {answer.question_id} does not belong to this survey")
        if answer.question_id in seen:
            raise ValidationError(f"question {answer.question_id} answered more than once")
        seen.add(answer.question_id)

        if _is_blank(answer.value):
            continue
        if not _value_fits(question.type, answer.value):
            raise ValidationError(
                f"invalid answer for {question.type.value} question {question.id}"
            )
        cleaned.append({"question_id": answer.question_id, "value": answer.value})

    answered = {answer["question_id"] for answer in cleaned}
    for question in questions:
        if question.required and question.id not in answered:
            raise ValidationError(f"question {question.id} is required")
    return cleaned


def _format_answer(question_type, value: Any) -> str:
    if value is None:
        return ""
    if question_type is QuestionType.CHECKBOX and isinstance(value, list):
        return CHECKBOX_SEPARATOR.join(str(item) for item in value)
    return str(value)


def render_responses_csv(survey: SurveyDetail, responses: Sequence[ResponseRecord]) -> str:
    """One row per response, one column per question in survey order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_FIXED_HEADERS + [question.text for question in survey.questions])

    for response in responses:
        values: Dict[int, Any] = {}
        for answer in response.answers:
            values.setdefault(answer.question_id, answer.value)

        row = [
            response.id,
            as_utc(response.submitted_at).strftime("%Y-%m-%dT%H:%M:%SZ"),
            str(response.user_id) if response.user_id is not None else "Anonymous",
        ]
        for question in survey.questions:
            row.append(_format_answer(question.type, values.get(question.id)))
        writer.writerow(row)
    return buffer.getvalue()


class ResponseService:
    def __init__(self, db, responses):
        self.surveys = SurveyRepository(db)
        self.gate = AuthorizationGate(self.surveys)
        self.responses = responses

    def submit_response(self, principal: Optional[Principal], payload: ResponseCreate) -> ResponseRecord:
        # Anonymous submissions are allowed; a supplied principal must still be well formed
        user_id = require_principal(principal).user_id if principal is not None else None

        survey = self.surveys.get_survey(payload.survey_id)
        if survey is None:
            raise NotFoundError(f"Survey {payload.survey_id} not found")
        if not survey.is_active:
            raise ValidationError("Survey is not accepting responses")

        state = window_state(survey.start_date, survey.end_date)
        if state == "not_started":
            raise ValidationError("Survey has not started yet")
        if state == "closed":
            raise ValidationError("Survey submission deadline has passed")

        answers = validate_answers(self.surveys.list_questions(survey.id), payload.answers)
        record = self.responses.create_response(survey.id, user_id, answers)
        logger.info(
            f"Response {record.id} stored for survey {survey.id} "
            f"({'anonymous' if user_id is None else f'user {user_id}'}, {len(answers)} answers)"
        )
        return record

    def list_responses(self, principal: Principal, survey_id: int) -> List[ResponseRecord]:
        self.gate.authorize(principal, survey_id, AccessMode.RESULTS)
        return self.responses.list_responses_by_survey(survey_id)

    def get_analytics(self, principal: Principal, survey_id: int) -> SurveyAnalytics:
        survey, responses = self._results(principal, survey_id)
        report = aggregate(survey, responses)
        logger.info(f"Analytics computed for survey {survey_id} over {report.total_responses} responses")
        return report

    def export_csv(self, principal: Principal, survey_id: int) -> Tuple[str, str]:
        survey, responses = self._results(principal, survey_id)
        filename = f"survey_{survey_id}_responses_{get_utc_now().strftime('%Y%m%d_%H%M%S')}.csv"
        logger.info(f"Exporting {len(responses)} responses of survey {survey_id} as {filename}")
        return render_responses_csv(survey, responses), filename

    def _results(self, principal: Principal, survey_id: int) -> Tuple[SurveyDetail, List[ResponseRecord]]:
        grant = self.gate.authorize(principal, survey_id, AccessMode.RESULTS)
        survey = SurveyDetail.model_validate(grant.survey)
        return survey, self.responses.list_responses_by_survey(survey_id)
