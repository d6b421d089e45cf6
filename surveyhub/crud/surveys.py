from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload
from typing import Any, Dict, Iterable, List, Optional

from surveyhub.db.unit_of_work import UnitOfWork
from surveyhub.models.survey import Survey, Question, QuestionOption, QuestionType


class SurveyRepository:
    """
    Persistence for the survey / question / option tree.

    Plain reads run on the request session. Every ``*_tx`` method takes the
    ``UnitOfWork`` returned by ``begin_tx`` and flushes before returning, so a
    database error surfaces at the call that caused it and new rows have ids.
    """

    def __init__(self, db: Session):
        self.db = db

    # Reads

    def get_survey(self, survey_id: int) -> Optional[Survey]:
        return self.db.query(Survey).filter(Survey.id == survey_id).first()

    def get_question(self, question_id: int) -> Optional[Question]:
        return self.db.query(Question).filter(Question.id == question_id).first()

    def list_questions(self, survey_id: int) -> List[Question]:
        return (
            self.db.query(Question)
            .options(selectinload(Question.options))
            .filter(Question.survey_id == survey_id)
            .order_by(Question.order_num, Question.id)
            .all()
        )

    def list_surveys(self, creator_id: Optional[int] = None, include_active: bool = False) -> List[Survey]:
        """
        All surveys when ``creator_id`` is None, otherwise the creator's own
        surveys, plus every active survey when ``include_active`` is set.
        """
        query = self.db.query(Survey)
        if creator_id is not None:
            if include_active:
                query = query.filter(or_(Survey.creator_id == creator_id, Survey.is_active.is_(True)))
            else:
                query = query.filter(Survey.creator_id == creator_id)
        return query.order_by(Survey.created_at.desc(), Survey.id.desc()).all()

    # Transactional writes

    def begin_tx(self) -> UnitOfWork:
        return UnitOfWork(self.db).begin()

    def create_survey_tx(self, uow: UnitOfWork, creator_id: int, fields: Dict[str, Any]) -> Survey:
        survey = Survey(creator_id=creator_id, **fields)
        uow.session.add(survey)
        uow.session.flush()
        return survey

    def update_survey_tx(self, uow: UnitOfWork, survey: Survey, fields: Dict[str, Any]) -> Survey:
        for field, value in fields.items():
            if field in ("id", "creator_id"):
                continue
            setattr(survey, field, value)
        uow.session.flush()
        return survey

    def delete_survey_tx(self, uow: UnitOfWork, survey: Survey) -> None:
        # Questions and options go with it through the ORM cascade
        uow.session.delete(survey)
        uow.session.flush()

    def list_questions_tx(self, uow: UnitOfWork, survey_id: int) -> List[Question]:
        return (
            uow.session.query(Question)
            .options(selectinload(Question.options))
            .filter(Question.survey_id == survey_id)
            .order_by(Question.order_num, Question.id)
            .all()
        )

    def create_question_tx(
        self,
        uow: UnitOfWork,
        survey_id: int,
        text: str,
        question_type: QuestionType,
        required: bool,
        order_num: int,
    ) -> Question:
        question = Question(
            survey_id=survey_id,
            text=text,
            type=question_type,
            required=required,
            order_num=order_num,
        )
        uow.session.add(question)
        uow.session.flush()
        self._expire_relation(uow, Survey, survey_id, "questions")
        return question

    def update_question_tx(
        self,
        uow: UnitOfWork,
        question: Question,
        text: str,
        question_type: QuestionType,
        required: bool,
        order_num: int,
    ) -> Question:
        question.text = text
        question.type = question_type
        question.required = required
        question.order_num = order_num
        uow.session.flush()
        return question

    def delete_question_tx(self, uow: UnitOfWork, question: Question) -> None:
        survey_id = question.survey_id
        uow.session.delete(question)
        uow.session.flush()
        self._expire_relation(uow, Survey, survey_id, "questions")

    def create_option_tx(self, uow: UnitOfWork, question_id: int, text: str, order_num: int) -> QuestionOption:
        option = QuestionOption(question_id=question_id, text=text, order_num=order_num)
        uow.session.add(option)
        uow.session.flush()
        self._expire_relation(uow, Question, question_id, "options")
        return option

    def delete_options_for_question_tx(self, uow: UnitOfWork, question_id: int) -> int:
        deleted = (
            uow.session.query(QuestionOption)
            .filter(QuestionOption.question_id == question_id)
            .delete(synchronize_session="fetch")
        )
        uow.session.flush()
        self._expire_relation(uow, Question, question_id, "options")
        return deleted

    def delete_questions_for_survey_except_tx(
        self, uow: UnitOfWork, survey_id: int, keep_ids: Iterable[int]
    ) -> List[int]:
        keep_ids = list(keep_ids)
        query = uow.session.query(Question).filter(Question.survey_id == survey_id)
        if keep_ids:
            query = query.filter(Question.id.notin_(keep_ids))
        doomed = query.all()
        deleted_ids = [question.id for question in doomed]
        for question in doomed:
            uow.session.delete(question)
        uow.session.flush()
        self._expire_relation(uow, Survey, survey_id, "questions")
        return deleted_ids

    @staticmethod
    def _expire_relation(uow: UnitOfWork, model, obj_id: int, attribute: str) -> None:
        # Rows written by id bypass the parent's loaded collection; make the next access reload it
        obj = uow.session.get(model, obj_id)
        if obj is not None:
            uow.session.expire(obj, [attribute])
