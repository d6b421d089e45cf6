import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from surveyhub.core.errors import TransactionError

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    Atomic boundary around a sequence of repository calls.

    Returned by ``SurveyRepository.begin_tx`` and threaded through every
    ``*_tx`` repository method. Use it as a context manager: unless
    ``commit()`` was called, leaving the block rolls everything back.
    """

    def __init__(self, session: Session):
        self.session = session
        self.committed = False

    def begin(self) -> "UnitOfWork":
        try:
            # A read earlier in the request may already have opened the transaction
            if not self.session.in_transaction():
                self.session.begin()
        except SQLAlchemyError as e:
            logger.error(f"Failed to begin transaction: {str(e)}")
            raise TransactionError(f"failed to begin transaction: {e}", operation="begin") from e
        logger.debug("Transaction BEGAN")
        return self

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Transaction commit FAILED: {str(e)}")
            self._rollback_after_failure()
            raise TransactionError(f"failed to commit transaction: {e}", operation="commit") from e
        self.committed = True
        logger.debug("Transaction COMMITTED")

    def rollback(self) -> None:
        try:
            self.session.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Transaction rollback FAILED: {str(e)}")
            raise TransactionError(f"failed to roll back transaction: {e}", operation="rollback") from e
        logger.debug("Transaction ROLLED BACK")

    def _rollback_after_failure(self) -> None:
        # The triggering error is what the caller needs to see; a failed rollback is only logged
        try:
            self.session.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Transaction rollback FAILED: {str(e)}")

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self.committed:
            return False
        if exc is not None:
            logger.warning(f"Rolling back transaction after error: {exc}")
            self._rollback_after_failure()
        else:
            self.rollback()
        return False
