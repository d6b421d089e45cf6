"""
Response analytics.

``aggregate`` is a pure function of a survey definition and its responses:
no I/O, no mutation. Each question is summarized according to its type:

- single choice / multiple choice / dropdown: count per option, matched by
  exact option text
- checkbox: count per selected option text
- linear scale: count per value on the fixed 1..5 scale, plus the average
- text / paragraph / short answer / date: the raw answers, unaggregated

Percentages are relative to the respondents who answered that particular
question, not to the survey's total response count, so the options of a
single-choice question always add up to 100 when anyone answered it.
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from surveyhub.models.survey import QuestionType, TEXT_TYPES
from surveyhub.schemas.analytics import OptionSummary, QuestionAnalytics, SurveyAnalytics
from surveyhub.schemas.response import AnswerIn, ResponseRecord

logger = logging.getLogger(__name__)

# Linear scales are always 1..5; the survey does not store its own bounds
LINEAR_SCALE_MIN = 1
LINEAR_SCALE_MAX = 5

SINGLE_ANSWER_CHOICE_TYPES = frozenset({
    QuestionType.SINGLE_CHOICE,
    QuestionType.MULTIPLE_CHOICE,
    QuestionType.DROPDOWN,
})


def aggregate(survey, responses: Sequence[ResponseRecord]) -> SurveyAnalytics:
    """
    Build the analytics report for ``survey`` (anything shaped like
    ``SurveyDetail``: id, title, questions with options) from ``responses``.
    """
    return SurveyAnalytics(
        survey_id=survey.id,
        survey_title=survey.title,
        total_responses=len(responses),
        question_analytics=[summarize_question(question, responses) for question in survey.questions],
    )


def summarize_question(question, responses: Sequence[ResponseRecord]) -> QuestionAnalytics:
    question_type = _question_type(question.type)
    analytics = QuestionAnalytics(
        question_id=question.id,
        question_text=question.text,
        question_type=question_type.value if question_type else str(question.type),
    )
    values = [answer.value for answer in _answers_to(question.id, responses)]

    if question_type in SINGLE_ANSWER_CHOICE_TYPES:
        analytics.options_summary = _choice_summary(question.options, values)
    elif question_type is QuestionType.CHECKBOX:
        analytics.options_summary = _checkbox_summary(question.options, values)
    elif question_type is QuestionType.LINEAR_SCALE:
        analytics.options_summary, analytics.average = _linear_scale_summary(values)
    elif question_type in TEXT_TYPES:
        analytics.text_responses = [value for value in values if isinstance(value, str) and value != ""]
    else:
        logger.debug(f"No summary for question {question.id} of unknown type {question.type!r}")
    return analytics


def coerce_scale_value(value: Any) -> Optional[int]:
    """Integer on the 1..5 scale, or None if ``value`` is not a number in range."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return None
        number = int(value)
    elif isinstance(value, str):
        try:
            number = int(value.strip())
        except ValueError:
            try:
                parsed = float(value)
            except ValueError:
                return None
            if not math.isfinite(parsed):
                return None
            number = int(parsed)
    else:
        return None
    if LINEAR_SCALE_MIN <= number <= LINEAR_SCALE_MAX:
        return number
    return None


def _question_type(raw) -> Optional[QuestionType]:
    if isinstance(raw, QuestionType):
        return raw
    try:
        return QuestionType(raw)
    except ValueError:
        return None


def _answers_to(question_id: int, responses: Iterable[ResponseRecord]) -> List[AnswerIn]:
    # Only a response's first answer to a question counts
    answers = []
    for response in responses:
        for answer in response.answers:
            if answer.question_id == question_id:
                answers.append(answer)
                break
    return answers


def _percentage(count: int, base: int) -> float:
    if base == 0:
        return 0.0
    return count * 100 / base


def _option_summaries(options, counts: Dict[int, int], base: int) -> List[OptionSummary]:
    return [
        OptionSummary(
            option_id=option.id,
            option_text=option.text,
            count=counts[option.id],
            percentage=_percentage(counts[option.id], base),
        )
        for option in options
    ]


def _choice_summary(options, values: List[Any]) -> List[OptionSummary]:
    option_ids = {option.text: option.id for option in options}
    counts = {option.id: 0 for option in options}
    base = 0
    for value in values:
        if isinstance(value, str) and value in option_ids:
            counts[option_ids[value]] += 1
            base += 1
    return _option_summaries(options, counts, base)


def _checkbox_summary(options, values: List[Any]) -> List[OptionSummary]:
    option_ids = {option.text: option.id for option in options}
    counts = {option.id: 0 for option in options}
    base = 0
    for value in values:
        if not isinstance(value, list):
            continue
        if value:
            base += 1
        for selected in value:
            if isinstance(selected, str) and selected in option_ids:
                counts[option_ids[selected]] += 1
    return _option_summaries(options, counts, base)


def _linear_scale_summary(values: List[Any]) -> Tuple[List[OptionSummary], Optional[float]]:
    counts = {point: 0 for point in range(LINEAR_SCALE_MIN, LINEAR_SCALE_MAX + 1)}
    total = 0
    base = 0
    for value in values:
        point = coerce_scale_value(value)
        if point is None:
            continue
        counts[point] += 1
        total += point
        base += 1

    summary = [
        OptionSummary(
            option_id=point,
            option_text=str(point),
            count=count,
            percentage=_percentage(count, base),
        )
        for point, count in counts.items()
    ]
    average = total / base if base else None
    return summary, average
