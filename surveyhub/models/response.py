from sqlalchemy import Column, Integer, ForeignKey, DateTime, JSON
from datetime import datetime, timezone
from surveyhub.db.base import Base

class SurveyResponse(Base):
    """
    One submitted response, stored when RESPONSE_STORE is "sql".

    ``answers`` keeps the submitted list as-is: ``[{"question_id": int, "value": ...}]``.
    Responses are written once and never edited.
    """
    __tablename__ = "survey_responses"

    id = Column(Integer, primary_key=True)
    survey_id = Column(Integer, ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    submitted_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    answers = Column(JSON, nullable=False)
