"""
Доменные записи, которыми обмениваются сервисы и хранилища.

Записи не зависят от ORM: сервисы работают с ними одинаково поверх
Django-хранилищ и поверх in-memory реализаций в тестах.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from django.db import models

from .exceptions import InvalidField, TooManyReviewers

MAX_REVIEWERS = 2


class PullRequestStatus(models.TextChoices):
    OPEN = 'OPEN', 'Open'
    MERGED = 'MERGED', 'Merged'


class MergeOutcome(enum.Enum):
    """Результат условного мержа в хранилище."""
    UPDATED = 'updated'
    ALREADY_MERGED = 'already_merged'
    NOT_FOUND = 'not_found'


@dataclass
class UserRecord:
    id: str
    username: str
    team_name: str
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def validate(self):
        if not self.id:
            raise InvalidField('invalid user id', code='INVALID_USER_ID')
        if not self.username:
            raise InvalidField('invalid username', code='INVALID_USERNAME')
        if not self.team_name:
            raise InvalidField('invalid team name', code='INVALID_TEAM_NAME')


@dataclass
class TeamRecord:
    name: str
    members: List[UserRecord] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def validate(self):
        if not self.name:
            raise InvalidField('invalid team name', code='INVALID_TEAM_NAME')

        seen = set()
        for member in self.members:
            member.team_name = self.name
            member.validate()
            if member.id in seen:
                raise InvalidField(f"duplicate member '{member.id}'", code='DUPLICATE_MEMBER')
            seen.add(member.id)


@dataclass
class PullRequestRecord:
    id: str
    name: str
    author_id: str
    status: str = PullRequestStatus.OPEN
    assigned_reviewers: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_merged(self) -> bool:
        return self.status == PullRequestStatus.MERGED

    def validate(self):
        if not self.id:
            raise InvalidField('invalid pull request id', code='INVALID_PR_ID')
        if not self.name:
            raise InvalidField('invalid pull request name', code='INVALID_PR_NAME')
        if not self.author_id:
            raise InvalidField('invalid author id', code='INVALID_AUTHOR_ID')
        if len(self.assigned_reviewers) > MAX_REVIEWERS:
            raise TooManyReviewers()


@dataclass
class PullRequestShort:
    id: str
    name: str
    author_id: str
    status: str


@dataclass
class UserAssignmentStats:
    user_id: str
    username: str
    team_name: str
    is_active: bool
    assignment_count: int


@dataclass
class PRAssignmentStats:
    total_prs: int = 0
    open_prs: int = 0
    merged_prs: int = 0
    avg_reviewers_per_pr: float = 0.0
    prs_with_no_reviewers: int = 0
    prs_with_one_reviewer: int = 0
    prs_with_two_reviewers: int = 0


@dataclass
class StatsSummary:
    total_users: int = 0
    active_users: int = 0
    total_assignments: int = 0
    most_assigned_user: Optional[str] = None
    most_assignments: int = 0


@dataclass
class AssignmentStatsReport:
    user_stats: List[UserAssignmentStats]
    pr_stats: PRAssignmentStats
    summary: StatsSummary
