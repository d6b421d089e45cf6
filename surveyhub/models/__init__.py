from .user import Role, RoleType, User
from .survey import Survey, Question, QuestionOption, QuestionType, CHOICE_TYPES, TEXT_TYPES
from .response import SurveyResponse
