"""
Ошибки предметной области.

Каждая ошибка несет машинный ``code``, который попадает в ответ API как есть.
"""


class DomainError(Exception):
    code = 'DOMAIN_ERROR'
    default_message = 'domain rule violated'

    def __init__(self, message=None, code=None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class NotFound(DomainError):
    code = 'NOT_FOUND'
    default_message = 'resource not found'


class AlreadyExists(DomainError):
    code = 'ALREADY_EXISTS'
    default_message = 'resource already exists'


class TeamExists(AlreadyExists):
    code = 'TEAM_EXISTS'
    default_message = 'team_name already exists'


class PullRequestExists(AlreadyExists):
    code = 'PR_EXISTS'
    default_message = 'PR id already exists'


class InvalidField(DomainError):
    """Некорректное значение поля. Конкретный вид передается через ``code``."""
    code = 'VALIDATION_ERROR'
    default_message = 'invalid value'


class TooManyReviewers(InvalidField):
    code = 'TOO_MANY_REVIEWERS'
    default_message = 'too many reviewers assigned'


class UserNotActive(DomainError):
    code = 'USER_NOT_ACTIVE'
    default_message = 'user is not active'


class PullRequestMerged(DomainError):
    code = 'PR_MERGED'
    default_message = 'cannot reassign on merged PR'


class NotAssigned(DomainError):
    code = 'NOT_ASSIGNED'
    default_message = 'reviewer is not assigned to this PR'


class NoCandidate(DomainError):
    code = 'NO_CANDIDATE'
    default_message = 'no active replacement candidate in team'


class DeadlineExceeded(Exception):
    """Операция не уложилась в отведенное время."""

    code = 'DEADLINE_EXCEEDED'

    def __init__(self, operation):
        self.operation = operation
        super().__init__(f"deadline exceeded during '{operation}'")


class StorageError(Exception):
    """Техническая ошибка хранилища (соединение, сериализация и т.п.)."""

    code = 'STORAGE_ERROR'
