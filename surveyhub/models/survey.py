from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, DateTime, Enum
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
from surveyhub.db.base import Base

class QuestionType(str, enum.Enum):
    TEXT = "text"
    PARAGRAPH = "paragraph"
    SHORT_ANSWER = "short_answer"
    DATE = "date"
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    DROPDOWN = "dropdown"
    CHECKBOX = "checkbox"
    LINEAR_SCALE = "linear_scale"

    @property
    def has_options(self) -> bool:
        return self in CHOICE_TYPES

# Question types whose answers are picked from the question's options
CHOICE_TYPES = frozenset({
    QuestionType.SINGLE_CHOICE,
    QuestionType.MULTIPLE_CHOICE,
    QuestionType.DROPDOWN,
    QuestionType.CHECKBOX,
})

TEXT_TYPES = frozenset({
    QuestionType.TEXT,
    QuestionType.PARAGRAPH,
    QuestionType.SHORT_ANSWER,
    QuestionType.DATE,
})

class Survey(Base):
    __tablename__ = "surveys"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=False)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    creator = relationship("User", back_populates="surveys")
    questions = relationship(
        "Question",
        back_populates="survey",
        order_by="Question.order_num",
        cascade="all, delete-orphan",
    )

class Question(Base):
    __tablename__ = "questions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    survey_id = Column(Integer, ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    type = Column(Enum(QuestionType), nullable=False)
    required = Column(Boolean, nullable=False, default=False)
    order_num = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    survey = relationship("Survey", back_populates="questions")
    options = relationship(
        "QuestionOption",
        back_populates="question",
        order_by="QuestionOption.order_num",
        cascade="all, delete-orphan",
    )

class QuestionOption(Base):
    __tablename__ = "question_options"
    # Option ids are re-issued on every synchronization and must never be recycled
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    order_num = Column(Integer, nullable=False)

    question = relationship("Question", back_populates="options")
