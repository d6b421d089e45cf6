from pydantic import BaseModel
from typing import Any, List, Optional
from datetime import datetime


class AnswerIn(BaseModel):
    question_id: int
    # str for choice/text questions, a number for linear scales, a list of option texts for checkboxes
    value: Any = None


class ResponseCreate(BaseModel):
    survey_id: int
    answers: List[AnswerIn]


class ResponseRecord(BaseModel):
    id: str
    survey_id: int
    user_id: Optional[int] = None
    submitted_at: datetime
    answers: List[AnswerIn] = []


class ResponseCreated(BaseModel):
    message: str
    id: str
    survey_id: int
