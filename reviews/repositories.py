"""
Хранилища пользователей, команд, PR и статистики.

Сервисы зависят только от протоколов ``UserStore``, ``TeamStore``,
``PullRequestStore`` и ``StatsStore``; реализации ниже работают через Django ORM.
Технические ошибки БД заворачиваются в ``StorageError``.
"""

import functools
import logging
from datetime import datetime
from typing import Iterable, List, Protocol

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count, Q
from django.utils import timezone

from .domain import (
    MergeOutcome,
    PRAssignmentStats,
    PullRequestRecord,
    PullRequestShort,
    PullRequestStatus,
    TeamRecord,
    UserAssignmentStats,
    UserRecord,
)
from .exceptions import NotFound, PullRequestExists, PullRequestMerged, StorageError, TeamExists
from .models import PullRequest, PullRequestReviewer, Team, User

logger = logging.getLogger(__name__)


class UserStore(Protocol):
    def get_by_id(self, user_id: str) -> UserRecord: ...

    def get_by_team(self, team_name: str) -> List[UserRecord]: ...

    def get_active_team_members_excluding(self, team_name: str, exclude_ids: Iterable[str]) -> List[UserRecord]: ...

    def save(self, user: UserRecord) -> UserRecord: ...

    def set_active(self, user_id: str, is_active: bool) -> None: ...

    def deactivate(self, user_ids: Iterable[str]) -> int: ...


class TeamStore(Protocol):
    def get_by_name(self, team_name: str) -> TeamRecord: ...

    def exists(self, team_name: str) -> bool: ...

    def create(self, team: TeamRecord) -> TeamRecord: ...


class PullRequestStore(Protocol):
    def create(self, pr: PullRequestRecord) -> PullRequestRecord: ...

    def get_by_id(self, pr_id: str) -> PullRequestRecord: ...

    def get_by_author(self, author_id: str) -> List[PullRequestRecord]: ...

    def get_by_reviewer(self, reviewer_id: str) -> List[PullRequestShort]: ...

    def get_open_by_reviewer(self, reviewer_id: str) -> List[PullRequestRecord]: ...

    def update(self, pr: PullRequestRecord) -> PullRequestRecord: ...

    def merge(self, pr_id: str, merged_at: datetime) -> MergeOutcome: ...

    def exists(self, pr_id: str) -> bool: ...


class StatsStore(Protocol):
    def get_user_assignment_stats(self) -> List[UserAssignmentStats]: ...

    def get_pr_assignment_stats(self) -> PRAssignmentStats: ...

    def get_user_assignment_count(self, user_id: str) -> int: ...


def wrap_storage_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError as e:
            logger.error("Storage failure in %s: %s", func.__qualname__, e)
            raise StorageError(f"{func.__qualname__} failed: {e}") from e
    return wrapper


def _user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        username=user.username,
        team_name=user.team.name,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _pr_record(pr: PullRequest) -> PullRequestRecord:
    return PullRequestRecord(
        id=pr.id,
        name=pr.name,
        author_id=pr.author_id,
        status=pr.status,
        assigned_reviewers=[slot.user_id for slot in pr.review_slots.all()],
        created_at=pr.created_at,
        merged_at=pr.merged_at,
        updated_at=pr.updated_at,
    )


class DjangoUserStore:

    @wrap_storage_errors
    def get_by_id(self, user_id: str) -> UserRecord:
        try:
            user = User.objects.select_related('team').get(id=user_id)
        except User.DoesNotExist:
            raise NotFound(f"User '{user_id}' not found")
        return _user_record(user)

    @wrap_storage_errors
    def get_by_team(self, team_name: str) -> List[UserRecord]:
        users = User.objects.select_related('team').filter(team__name=team_name).order_by('username')
        return [_user_record(user) for user in users]

    @wrap_storage_errors
    def get_active_team_members_excluding(self, team_name: str, exclude_ids: Iterable[str]) -> List[UserRecord]:
        users = (
            User.objects
            .select_related('team')
            .filter(team__name=team_name, is_active=True)
            .exclude(id__in=list(exclude_ids))
            .order_by('username')
        )
        return [_user_record(user) for user in users]

    @wrap_storage_errors
    def save(self, user: UserRecord) -> UserRecord:
        try:
            team = Team.objects.get(name=user.team_name)
        except Team.DoesNotExist:
            raise NotFound(f"Team '{user.team_name}' not found")

        obj, _ = User.objects.update_or_create(
            id=user.id,
            defaults={
                'username': user.username,
                'team': team,
                'is_active': user.is_active,
            },
        )
        return _user_record(obj)

    @wrap_storage_errors
    def set_active(self, user_id: str, is_active: bool) -> None:
        updated = User.objects.filter(id=user_id).update(is_active=is_active, updated_at=timezone.now())
        if updated == 0:
            raise NotFound(f"User '{user_id}' not found")

    @wrap_storage_errors
    def deactivate(self, user_ids: Iterable[str]) -> int:
        return User.objects.filter(id__in=list(user_ids)).update(is_active=False, updated_at=timezone.now())


class DjangoTeamStore:

    @wrap_storage_errors
    def get_by_name(self, team_name: str) -> TeamRecord:
        try:
            team = Team.objects.get(name=team_name)
        except Team.DoesNotExist:
            raise NotFound(f"Team '{team_name}' not found")

        return TeamRecord(
            name=team.name,
            members=DjangoUserStore().get_by_team(team.name),
            created_at=team.created_at,
            updated_at=team.updated_at,
        )

    @wrap_storage_errors
    def exists(self, team_name: str) -> bool:
        return Team.objects.filter(name=team_name).exists()

    @wrap_storage_errors
    def create(self, team: TeamRecord) -> TeamRecord:
        # Команда и все участники сохраняются атомарно
        with transaction.atomic():
            obj, created = Team.objects.get_or_create(name=team.name)
            if not created:
                raise TeamExists()

            for member in team.members:
                User.objects.update_or_create(
                    id=member.id,
                    defaults={
                        'username': member.username,
                        'team': obj,
                        'is_active': member.is_active,
                    },
                )

        return self.get_by_name(team.name)


class DjangoPullRequestStore:

    def _queryset(self):
        return PullRequest.objects.prefetch_related('review_slots')

    @staticmethod
    def _write_reviewers(pr_id: str, reviewer_ids: List[str]):
        PullRequestReviewer.objects.filter(pull_request_id=pr_id).delete()
        PullRequestReviewer.objects.bulk_create([
            PullRequestReviewer(pull_request_id=pr_id, user_id=reviewer_id, position=position)
            for position, reviewer_id in enumerate(reviewer_ids)
        ])

    @wrap_storage_errors
    def create(self, pr: PullRequestRecord) -> PullRequestRecord:
        try:
            with transaction.atomic():
                PullRequest.objects.create(
                    id=pr.id,
                    name=pr.name,
                    author_id=pr.author_id,
                    status=pr.status,
                    merged_at=pr.merged_at,
                )
                self._write_reviewers(pr.id, pr.assigned_reviewers)
        except IntegrityError:
            if PullRequest.objects.filter(id=pr.id).exists():
                raise PullRequestExists()
            raise

        return self.get_by_id(pr.id)

    @wrap_storage_errors
    def get_by_id(self, pr_id: str) -> PullRequestRecord:
        try:
            pr = self._queryset().get(id=pr_id)
        except PullRequest.DoesNotExist:
            raise NotFound(f"PR '{pr_id}' not found")
        return _pr_record(pr)

    @wrap_storage_errors
    def get_by_author(self, author_id: str) -> List[PullRequestRecord]:
        prs = self._queryset().filter(author_id=author_id).order_by('-created_at')
        return [_pr_record(pr) for pr in prs]

    @wrap_storage_errors
    def get_by_reviewer(self, reviewer_id: str) -> List[PullRequestShort]:
        reviewed = PullRequestReviewer.objects.filter(user_id=reviewer_id).values('pull_request_id')
        rows = (
            PullRequest.objects
            .filter(id__in=reviewed)
            .order_by('-created_at')
            .values('id', 'name', 'author_id', 'status')
        )
        return [PullRequestShort(**row) for row in rows]

    @wrap_storage_errors
    def get_open_by_reviewer(self, reviewer_id: str) -> List[PullRequestRecord]:
        reviewed = PullRequestReviewer.objects.filter(user_id=reviewer_id).values('pull_request_id')
        prs = (
            self._queryset()
            .filter(id__in=reviewed, status=PullRequestStatus.OPEN)
            .order_by('-created_at')
        )
        return [_pr_record(pr) for pr in prs]

    @wrap_storage_errors
    def update(self, pr: PullRequestRecord) -> PullRequestRecord:
        """
        Перезаписывает имя и ревьюверов открытого PR.

        Статус и merged_at не трогаются: их меняет только ``merge``. Если PR уже
        смержен, поднимается ``PullRequestMerged``. Версионирования нет, среди
        конкурентных переназначений побеждает последняя запись.
        """
        with transaction.atomic():
            updated = (
                PullRequest.objects
                .filter(id=pr.id)
                .exclude(status=PullRequestStatus.MERGED)
                .update(name=pr.name, updated_at=timezone.now())
            )
            if updated == 0:
                if PullRequest.objects.filter(id=pr.id).exists():
                    raise PullRequestMerged()
                raise NotFound(f"PR '{pr.id}' not found")
            self._write_reviewers(pr.id, pr.assigned_reviewers)

        return self.get_by_id(pr.id)

    @wrap_storage_errors
    def merge(self, pr_id: str, merged_at: datetime) -> MergeOutcome:
        updated = (
            PullRequest.objects
            .filter(id=pr_id)
            .exclude(status=PullRequestStatus.MERGED)
            .update(status=PullRequestStatus.MERGED, merged_at=merged_at, updated_at=timezone.now())
        )
        if updated:
            return MergeOutcome.UPDATED
        if PullRequest.objects.filter(id=pr_id).exists():
            return MergeOutcome.ALREADY_MERGED
        return MergeOutcome.NOT_FOUND

    @wrap_storage_errors
    def exists(self, pr_id: str) -> bool:
        return PullRequest.objects.filter(id=pr_id).exists()


class DjangoStatsStore:

    @wrap_storage_errors
    def get_user_assignment_stats(self) -> List[UserAssignmentStats]:
        users = (
            User.objects
            .filter(is_active=True)
            .select_related('team')
            .annotate(assignment_count=Count('review_slots__pull_request', distinct=True))
            .order_by('-assignment_count', 'username')
        )
        return [
            UserAssignmentStats(
                user_id=user.id,
                username=user.username,
                team_name=user.team.name,
                is_active=user.is_active,
                assignment_count=user.assignment_count,
            )
            for user in users
        ]

    @wrap_storage_errors
    def get_pr_assignment_stats(self) -> PRAssignmentStats:
        totals = PullRequest.objects.aggregate(
            total_prs=Count('id'),
            open_prs=Count('id', filter=Q(status=PullRequestStatus.OPEN)),
            merged_prs=Count('id', filter=Q(status=PullRequestStatus.MERGED)),
        )
        stats = PRAssignmentStats(**totals)
        if not stats.total_prs:
            return stats

        stats.avg_reviewers_per_pr = PullRequestReviewer.objects.count() / stats.total_prs

        with_counts = PullRequest.objects.annotate(reviewers_count=Count('review_slots'))
        stats.prs_with_no_reviewers = with_counts.filter(reviewers_count=0).count()
        stats.prs_with_one_reviewer = with_counts.filter(reviewers_count=1).count()
        stats.prs_with_two_reviewers = with_counts.filter(reviewers_count=2).count()
        return stats

    @wrap_storage_errors
    def get_user_assignment_count(self, user_id: str) -> int:
        return PullRequestReviewer.objects.filter(user_id=user_id).values('pull_request_id').distinct().count()
