import logging
import random
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from .deadline import Deadline, check_deadline
from .domain import (
    AssignmentStatsReport,
    MergeOutcome,
    PullRequestRecord,
    PullRequestShort,
    PullRequestStatus,
    StatsSummary,
    TeamRecord,
    UserAssignmentStats,
    UserRecord,
)
from .exceptions import NoCandidate, NotAssigned, NotFound, PullRequestExists, PullRequestMerged, UserNotActive
from .repositories import (
    DjangoPullRequestStore,
    DjangoStatsStore,
    DjangoTeamStore,
    DjangoUserStore,
    PullRequestStore,
    StatsStore,
    TeamStore,
    UserStore,
)
from .selector import ReviewerSelector

logger = logging.getLogger(__name__)


class TeamService:
    """
    Сервис для управления командами и пользователями
    """

    def __init__(self, team_store: TeamStore, user_store: UserStore, pr_store: PullRequestStore,
                 selector: ReviewerSelector, atomic=nullcontext):
        self._teams = team_store
        self._users = user_store
        self._prs = pr_store
        self._selector = selector
        self._atomic = atomic

    def create_team(self, team_name: str, members_data: list, deadline: Optional[Deadline] = None) -> TeamRecord:
        """
        Создает команду с пользователями.

        Существующие пользователи переводятся в новую команду с переданными
        именем и флагом активности.
        """
        team = TeamRecord(
            name=team_name,
            members=[
                UserRecord(
                    id=member['user_id'],
                    username=member['username'],
                    team_name=team_name,
                    is_active=bool(member['is_active']),
                )
                for member in members_data
            ],
        )
        team.validate()

        check_deadline(deadline, 'team.create')
        created = self._teams.create(team)
        logger.info("Team '%s' created with %d members", created.name, len(created.members))
        return created

    def get_team(self, team_name: str, deadline: Optional[Deadline] = None) -> TeamRecord:
        check_deadline(deadline, 'team.get')
        return self._teams.get_by_name(team_name)

    def deactivate_members(self, team_name: str, user_ids: Optional[Iterable[str]] = None,
                           deadline: Optional[Deadline] = None) -> Tuple[TeamRecord, int]:
        """
        Массовая деактивация пользователей команды с переназначением открытых PR.

        Без ``user_ids`` деактивируется вся команда, пустой список никого не трогает.

        Возвращает команду после изменений и число выполненных замен ревьюверов.
        """
        with self._atomic():
            check_deadline(deadline, 'team.deactivate')
            team = self._teams.get_by_name(team_name)

            if user_ids is not None:
                wanted = set(user_ids)
                deactivating = [member for member in team.members if member.id in wanted]
            else:
                deactivating = list(team.members)

            if not deactivating:
                return team, 0

            deactivating_ids = {member.id for member in deactivating}
            reassigned = 0
            seen_prs = set()

            for member in deactivating:
                check_deadline(deadline, 'team.deactivate')
                for pr in self._prs.get_open_by_reviewer(member.id):
                    if pr.id in seen_prs:
                        continue
                    seen_prs.add(pr.id)
                    reassigned += self._replace_deactivating_reviewers(pr, team_name, deactivating_ids, deadline)

            check_deadline(deadline, 'team.deactivate')
            self._users.deactivate(deactivating_ids)

            logger.info(
                "Deactivated %d members of team '%s', %d reviewer slots reassigned",
                len(deactivating_ids), team_name, reassigned,
            )
            return self._teams.get_by_name(team_name), reassigned

    def _replace_deactivating_reviewers(self, pr: PullRequestRecord, team_name: str,
                                        deactivating_ids: set, deadline: Optional[Deadline]) -> int:
        # Кандидат не должен быть автором, уже назначенным или деактивируемым
        reviewers = list(pr.assigned_reviewers)
        replaced = 0

        for position, reviewer_id in enumerate(reviewers):
            if reviewer_id not in deactivating_ids:
                continue

            exclude = {pr.author_id} | set(reviewers) | deactivating_ids
            check_deadline(deadline, 'team.deactivate')
            try:
                new_reviewer_id = self._selector.select_replacement_reviewer(team_name, exclude)
            except NoCandidate:
                logger.warning("No replacement for '%s' on PR '%s', reviewer kept", reviewer_id, pr.id)
                continue

            reviewers[position] = new_reviewer_id
            replaced += 1

        if not replaced:
            return 0

        pr.assigned_reviewers = reviewers
        check_deadline(deadline, 'team.deactivate')
        try:
            self._prs.update(pr)
        except PullRequestMerged:
            logger.info("PR '%s' merged during deactivation, reviewers kept", pr.id)
            return 0
        return replaced


class UserService:
    """
    Сервис для управления пользователями
    """

    def __init__(self, user_store: UserStore, pr_store: PullRequestStore):
        self._users = user_store
        self._prs = pr_store

    def get_user(self, user_id: str, deadline: Optional[Deadline] = None) -> UserRecord:
        check_deadline(deadline, 'user.get')
        return self._users.get_by_id(user_id)

    def set_user_active_status(self, user_id: str, is_active: bool,
                               deadline: Optional[Deadline] = None) -> UserRecord:
        check_deadline(deadline, 'user.set_active')
        self._users.set_active(user_id, is_active)
        logger.info("User '%s' is_active set to %s", user_id, is_active)

        check_deadline(deadline, 'user.set_active')
        return self._users.get_by_id(user_id)

    def get_user_review_assignments(self, user_id: str,
                                    deadline: Optional[Deadline] = None) -> List[PullRequestShort]:
        check_deadline(deadline, 'user.get_review')
        self._users.get_by_id(user_id)

        check_deadline(deadline, 'user.get_review')
        return self._prs.get_by_reviewer(user_id)


class PullRequestService:
    """
    Сервис для управления Pull Request'ами
    """

    def __init__(self, pr_store: PullRequestStore, user_store: UserStore, team_store: TeamStore,
                 selector: ReviewerSelector):
        self._prs = pr_store
        self._users = user_store
        self._teams = team_store
        self._selector = selector

    def create_pull_request(self, pr_id: str, pr_name: str, author_id: str,
                            deadline: Optional[Deadline] = None) -> PullRequestRecord:
        check_deadline(deadline, 'pr.create')
        if self._prs.exists(pr_id):
            raise PullRequestExists()

        check_deadline(deadline, 'pr.create')
        author = self._users.get_by_id(author_id)

        if not author.is_active:
            raise UserNotActive(f"Author '{author_id}' is not active")

        check_deadline(deadline, 'pr.create')
        if not self._teams.exists(author.team_name):
            raise NotFound(f"Team '{author.team_name}' not found")

        check_deadline(deadline, 'pr.create')
        reviewers = self._selector.select_reviewers(author)

        pr = PullRequestRecord(
            id=pr_id,
            name=pr_name,
            author_id=author_id,
            status=PullRequestStatus.OPEN,
            assigned_reviewers=reviewers,
        )
        pr.validate()

        check_deadline(deadline, 'pr.create')
        created = self._prs.create(pr)
        logger.info("PR '%s' created by '%s', reviewers: %s", pr_id, author_id, created.assigned_reviewers)
        return created

    def merge_pull_request(self, pr_id: str, deadline: Optional[Deadline] = None) -> PullRequestRecord:
        check_deadline(deadline, 'pr.merge')
        pr = self._prs.get_by_id(pr_id)

        if pr.is_merged:
            return pr

        check_deadline(deadline, 'pr.merge')
        outcome = self._prs.merge(pr_id, timezone.now())

        if outcome is MergeOutcome.NOT_FOUND:
            raise NotFound(f"PR '{pr_id}' not found")
        if outcome is MergeOutcome.ALREADY_MERGED:
            logger.info("PR '%s' was merged concurrently", pr_id)
        else:
            logger.info("PR '%s' merged", pr_id)

        check_deadline(deadline, 'pr.merge')
        return self._prs.get_by_id(pr_id)

    def reassign_reviewer(self, pr_id: str, old_user_id: str,
                          deadline: Optional[Deadline] = None) -> Tuple[PullRequestRecord, str]:
        check_deadline(deadline, 'pr.reassign')
        pr = self._prs.get_by_id(pr_id)

        if pr.is_merged:
            raise PullRequestMerged()

        if old_user_id not in pr.assigned_reviewers:
            raise NotAssigned()

        check_deadline(deadline, 'pr.reassign')
        old_reviewer = self._users.get_by_id(old_user_id)

        check_deadline(deadline, 'pr.reassign')
        new_reviewer_id = self._selector.select_replacement_reviewer(
            old_reviewer.team_name,
            [pr.author_id, old_user_id],
        )

        pr.assigned_reviewers = [
            new_reviewer_id if reviewer_id == old_user_id else reviewer_id
            for reviewer_id in pr.assigned_reviewers
        ]

        check_deadline(deadline, 'pr.reassign')
        updated = self._prs.update(pr)
        logger.info("PR '%s': reviewer '%s' replaced by '%s'", pr_id, old_user_id, new_reviewer_id)
        return updated, new_reviewer_id

    def get_pull_request(self, pr_id: str, deadline: Optional[Deadline] = None) -> PullRequestRecord:
        check_deadline(deadline, 'pr.get')
        return self._prs.get_by_id(pr_id)

    def get_by_reviewer(self, reviewer_id: str, deadline: Optional[Deadline] = None) -> List[PullRequestShort]:
        check_deadline(deadline, 'pr.get_by_reviewer')
        self._users.get_by_id(reviewer_id)

        check_deadline(deadline, 'pr.get_by_reviewer')
        return self._prs.get_by_reviewer(reviewer_id)

    def get_by_author(self, author_id: str, deadline: Optional[Deadline] = None) -> List[PullRequestRecord]:
        check_deadline(deadline, 'pr.get_by_author')
        self._users.get_by_id(author_id)

        check_deadline(deadline, 'pr.get_by_author')
        return self._prs.get_by_author(author_id)


class StatsService:
    """
    Сервис для сбора статистики назначений.

    Ничего не кэширует: каждый запрос пересчитывает данные из хранилища.
    """

    def __init__(self, stats_store: StatsStore, user_store: UserStore):
        self._stats = stats_store
        self._users = user_store

    def get_assignment_stats(self, deadline: Optional[Deadline] = None) -> AssignmentStatsReport:
        check_deadline(deadline, 'stats.assignments')
        user_stats = self._stats.get_user_assignment_stats()

        check_deadline(deadline, 'stats.assignments')
        pr_stats = self._stats.get_pr_assignment_stats()

        return AssignmentStatsReport(
            user_stats=user_stats,
            pr_stats=pr_stats,
            summary=self.calculate_summary(user_stats),
        )

    def get_user_stats(self, user_id: str, deadline: Optional[Deadline] = None) -> UserAssignmentStats:
        check_deadline(deadline, 'stats.user')
        user = self._users.get_by_id(user_id)

        check_deadline(deadline, 'stats.user')
        count = self._stats.get_user_assignment_count(user_id)

        return UserAssignmentStats(
            user_id=user.id,
            username=user.username,
            team_name=user.team_name,
            is_active=user.is_active,
            assignment_count=count,
        )

    @staticmethod
    def calculate_summary(user_stats: List[UserAssignmentStats]) -> StatsSummary:
        summary = StatsSummary(total_users=len(user_stats))

        for stat in user_stats:
            if stat.is_active:
                summary.active_users += 1
            summary.total_assignments += stat.assignment_count

            if stat.assignment_count > summary.most_assignments:
                summary.most_assignments = stat.assignment_count
                summary.most_assigned_user = stat.username

        return summary


@dataclass
class Services:
    teams: TeamService
    users: UserService
    pull_requests: PullRequestService
    stats: StatsService


def build_services(user_store: UserStore = None, team_store: TeamStore = None,
                   pr_store: PullRequestStore = None, stats_store: StatsStore = None,
                   rng: random.Random = None, atomic=None) -> Services:
    """
    Собирает сервисы поверх хранилищ. По умолчанию используются Django-хранилища
    и транзакции БД.
    """
    user_store = user_store or DjangoUserStore()
    team_store = team_store or DjangoTeamStore()
    pr_store = pr_store or DjangoPullRequestStore()
    stats_store = stats_store or DjangoStatsStore()
    atomic = atomic or transaction.atomic

    selector = ReviewerSelector(user_store, rng=rng)

    return Services(
        teams=TeamService(team_store, user_store, pr_store, selector, atomic=atomic),
        users=UserService(user_store, pr_store),
        pull_requests=PullRequestService(pr_store, user_store, team_store, selector),
        stats=StatsService(stats_store, user_store),
    )
