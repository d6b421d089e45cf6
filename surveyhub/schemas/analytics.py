from pydantic import BaseModel
from typing import List, Optional


class OptionSummary(BaseModel):
    option_id: Optional[int] = None
    option_text: str
    count: int = 0
    percentage: float = 0.0


class QuestionAnalytics(BaseModel):
    question_id: int
    question_text: str
    question_type: str
    options_summary: Optional[List[OptionSummary]] = None
    text_responses: Optional[List[str]] = None
    # Only set for linear scale questions
    average: Optional[float] = None


class SurveyAnalytics(BaseModel):
    survey_id: int
    survey_title: str
    total_responses: int
    question_analytics: List[QuestionAnalytics] = []
