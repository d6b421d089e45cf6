from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime

from surveyhub.models.survey import QuestionType


class OptionRead(BaseModel):
    id: int
    text: str
    order_num: int

    class Config:
        from_attributes = True


class QuestionRead(BaseModel):
    id: int
    survey_id: int
    text: str
    type: QuestionType
    required: bool
    order_num: int
    options: List[OptionRead] = []

    class Config:
        from_attributes = True


class SurveyRead(BaseModel):
    id: int
    creator_id: int
    title: str
    description: Optional[str] = None
    is_active: bool
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SurveyDetail(SurveyRead):
    questions: List[QuestionRead] = []


class QuestionIn(BaseModel):
    """
    One entry of a submitted question list.

    ``id`` present means "update this existing question", absent means "create".
    Options are plain texts: they are always replaced wholesale, never diffed.
    """
    id: Optional[int] = None
    text: str = Field(min_length=1)
    type: QuestionType
    required: bool = False
    options: List[str] = []

    @field_validator("options")
    @classmethod
    def validate_options(cls, v):
        if any(not text.strip() for text in v):
            raise ValueError("Option text cannot be empty")
        return v


class SurveyFields(BaseModel):
    """Scalar survey fields, updated in place by every synchronization."""
    title: str = Field(min_length=1)
    description: Optional[str] = ""
    is_active: bool = False
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_window(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class SurveyCreate(SurveyFields):
    questions: List[QuestionIn] = []


class SurveyUpdate(SurveyFields):
    questions: List[QuestionIn] = []


class SurveyStatusUpdate(BaseModel):
    is_active: bool
