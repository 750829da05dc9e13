"""
Выбор ревьюверов.

Кандидаты - активные участники команды автора (без самого автора). Источник
случайности передается снаружи: в тестах это ``random.Random(seed)``,
в приложении - общий для процесса ``random.SystemRandom``.
"""

import logging
import random
from typing import Iterable, List

from .domain import MAX_REVIEWERS, UserRecord
from .exceptions import NoCandidate
from .repositories import UserStore

logger = logging.getLogger(__name__)

_system_random = random.SystemRandom()


class ReviewerSelector:

    def __init__(self, user_store: UserStore, rng: random.Random = None):
        self._users = user_store
        self._rng = rng or _system_random

    def select_reviewers(self, author: UserRecord) -> List[str]:
        """Выбирает до двух ревьюверов; пустой пул - не ошибка."""
        candidates = self._users.get_active_team_members_excluding(author.team_name, [author.id])
        if not candidates:
            logger.info("No reviewer candidates in team '%s' for author '%s'", author.team_name, author.id)
            return []

        return self._pick(candidates, MAX_REVIEWERS)

    def select_replacement_reviewer(self, team_name: str, exclude_ids: Iterable[str]) -> str:
        candidates = self._users.get_active_team_members_excluding(team_name, exclude_ids)
        if not candidates:
            raise NoCandidate()

        return self._pick(candidates, 1)[0]

    def _pick(self, candidates: List[UserRecord], max_count: int) -> List[str]:
        count = min(max_count, len(candidates))
        return [user.id for user in self._rng.sample(candidates, count)]
