"""
Survey-level authorization.

``check`` is the plain gate: admins and the survey's creator get through,
everybody else is forbidden. ``authorize`` layers the access mode on top:
for READ an active survey is public, so a forbidden caller still gets a
read-only grant. WRITE and RESULTS never relax.
"""

import enum
import logging
from dataclasses import dataclass

from surveyhub.core.errors import ForbiddenError, NotFoundError
from surveyhub.core.security.principal import Principal, require_principal
from surveyhub.crud.surveys import SurveyRepository
from surveyhub.models.survey import Survey

logger = logging.getLogger(__name__)


class AccessMode(enum.Enum):
    READ = "read"
    WRITE = "write"
    # Responses, analytics and exports: readable by owner or admin only
    RESULTS = "results"


class AccessLevel(enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    PUBLIC = "public"


@dataclass
class AccessGrant:
    survey: Survey
    level: AccessLevel

    @property
    def can_modify(self) -> bool:
        return self.level in (AccessLevel.OWNER, AccessLevel.ADMIN)


class AuthorizationGate:
    def __init__(self, repository: SurveyRepository):
        self.repository = repository

    def check(self, principal: Principal, survey_id: int) -> AccessGrant:
        principal = require_principal(principal)

        survey = self.repository.get_survey(survey_id)
        if survey is None:
            logger.info(f"Survey {survey_id} not found for user {principal.user_id}")
            raise NotFoundError(f"Survey {survey_id} not found")

        if principal.is_admin:
            logger.debug(f"Access GRANTED for survey {survey_id} (user {principal.user_id} is admin)")
            return AccessGrant(survey=survey, level=AccessLevel.ADMIN)

        if survey.creator_id == principal.user_id:
            logger.debug(f"Access GRANTED for survey {survey_id} (user {principal.user_id} is owner)")
            return AccessGrant(survey=survey, level=AccessLevel.OWNER)

        logger.info(
            f"Access DENIED for survey {survey_id}: user {principal.user_id} "
            f"is neither admin nor owner (creator {survey.creator_id})"
        )
        raise ForbiddenError(f"Not allowed to access survey {survey_id}")

    def authorize(self, principal: Principal, survey_id: int, mode: AccessMode = AccessMode.WRITE) -> AccessGrant:
        try:
            return self.check(principal, survey_id)
        except ForbiddenError:
            if mode is not AccessMode.READ:
                raise
            survey = self.repository.get_survey(survey_id)
            if survey is None:
                raise NotFoundError(f"Survey {survey_id} not found")
            if not survey.is_active:
                raise
            logger.debug(f"Public read access GRANTED for active survey {survey_id}")
            return AccessGrant(survey=survey, level=AccessLevel.PUBLIC)
