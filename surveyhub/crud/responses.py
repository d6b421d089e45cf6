import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends
from pymongo import ASCENDING, MongoClient
from pymongo.errors import PyMongoError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from surveyhub.core.config.settings import get_settings
from surveyhub.core.errors import UpstreamServiceError
from surveyhub.db.session import get_db
from surveyhub.models.response import SurveyResponse
from surveyhub.schemas.response import AnswerIn, ResponseRecord

logger = logging.getLogger(__name__)


class SqlResponseRepository:
    """Responses in the relational database, one row per response with a JSON answer list."""

    def __init__(self, db: Session):
        self.db = db

    def create_response(self, survey_id: int, user_id: Optional[int], answers: List[Dict[str, Any]]) -> ResponseRecord:
        row = SurveyResponse(
            survey_id=survey_id,
            user_id=user_id,
            submitted_at=datetime.now(timezone.utc),
            answers=answers,
        )
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to store response for survey {survey_id}: {str(e)}")
            raise UpstreamServiceError(f"failed to store response: {e}") from e
        return self._to_record(row)

    def list_responses_by_survey(self, survey_id: int) -> List[ResponseRecord]:
        try:
            rows = (
                self.db.query(SurveyResponse)
                .filter(SurveyResponse.survey_id == survey_id)
                .order_by(SurveyResponse.submitted_at, SurveyResponse.id)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to load responses for survey {survey_id}: {str(e)}")
            raise UpstreamServiceError(f"failed to load responses: {e}") from e
        return [self._to_record(row) for row in rows]

    @staticmethod
    def _to_record(row: SurveyResponse) -> ResponseRecord:
        return ResponseRecord(
            id=str(row.id),
            survey_id=row.survey_id,
            user_id=row.user_id,
            submitted_at=row.submitted_at,
            answers=[AnswerIn(**answer) for answer in (row.answers or [])],
        )


class MongoResponseRepository:
    """
    Responses as documents in a MongoDB collection.

    Document shape: ``{surveyId, userId, submittedAt, answers: [{questionId, value}]}``.
    """

    def __init__(self, collection):
        self.collection = collection

    def create_response(self, survey_id: int, user_id: Optional[int], answers: List[Dict[str, Any]]) -> ResponseRecord:
        document = {
            "surveyId": survey_id,
            "userId": user_id,
            "submittedAt": datetime.now(timezone.utc),
            "answers": [
                {"questionId": answer["question_id"], "value": answer["value"]}
                for answer in answers
            ],
        }
        try:
            result = self.collection.insert_one(document)
        except PyMongoError as e:
            logger.error(f"Failed to store response for survey {survey_id}: {str(e)}")
            raise UpstreamServiceError(f"failed to store response: {e}") from e
        document["_id"] = result.inserted_id
        return self._to_record(document)

    def list_responses_by_survey(self, survey_id: int) -> List[ResponseRecord]:
        try:
            documents = list(
                self.collection.find({"surveyId": survey_id}).sort("submittedAt", ASCENDING)
            )
        except PyMongoError as e:
            logger.error(f"Failed to load responses for survey {survey_id}: {str(e)}")
            raise UpstreamServiceError(f"failed to load responses: {e}") from e
        return [self._to_record(document) for document in documents]

    @staticmethod
    def _to_record(document: Dict[str, Any]) -> ResponseRecord:
        return ResponseRecord(
            id=str(document["_id"]),
            survey_id=document["surveyId"],
            user_id=document.get("userId"),
            submitted_at=document["submittedAt"],
            answers=[
                AnswerIn(question_id=answer["questionId"], value=answer.get("value"))
                for answer in document.get("answers", [])
            ],
        )


@lru_cache()
def get_mongo_collection():
    settings = get_settings()
    client = MongoClient(settings.MONGO_URL)
    return client[settings.MONGO_DB][settings.MONGO_RESPONSES_COLLECTION]


def get_response_repository(db: Session = Depends(get_db)):
    if get_settings().RESPONSE_STORE == "mongo":
        return MongoResponseRepository(get_mongo_collection())
    return SqlResponseRepository(db)
