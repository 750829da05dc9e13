from django.test import SimpleTestCase, TestCase

from reviews.domain import UserAssignmentStats
from reviews.exceptions import NotFound
from reviews.models import PullRequest, Team, User
from reviews.services import StatsService, build_services
from reviews.tests.fakes import InMemoryState, in_memory_services
from reviews.tests.helpers import make_pull_request


class StatsServiceTest(TestCase):
    def setUp(self):
        self.service = build_services().stats
        self.team = Team.objects.create(name="backend")

        self.alice = User.objects.create(id="u1", username="Alice", team=self.team)
        self.bob = User.objects.create(id="u2", username="Bob", team=self.team)
        self.carol = User.objects.create(id="u3", username="Carol", team=self.team)
        self.dave = User.objects.create(id="u4", username="Dave", team=self.team, is_active=False)

        make_pull_request("pr-1", self.alice, [self.bob, self.carol])
        make_pull_request("pr-2", self.alice, [self.carol], status=PullRequest.Status.MERGED)
        make_pull_request("pr-3", self.bob, [])
        make_pull_request("pr-4", self.carol, [self.dave])

    def test_user_stats_ordered_by_count_then_username(self):
        """Пользователи отсортированы по числу назначений, затем по имени"""
        report = self.service.get_assignment_stats()

        self.assertEqual(
            [(stat.username, stat.assignment_count) for stat in report.user_stats],
            [("Carol", 2), ("Bob", 1), ("Alice", 0)],
        )

    def test_inactive_users_excluded(self):
        """Неактивные пользователи не попадают в статистику"""
        report = self.service.get_assignment_stats()

        self.assertNotIn("u4", [stat.user_id for stat in report.user_stats])

    def test_pr_stats(self):
        """Тест статистики по PR"""
        pr_stats = self.service.get_assignment_stats().pr_stats

        self.assertEqual(pr_stats.total_prs, 4)
        self.assertEqual(pr_stats.open_prs, 3)
        self.assertEqual(pr_stats.merged_prs, 1)
        self.assertEqual(pr_stats.prs_with_no_reviewers, 1)
        self.assertEqual(pr_stats.prs_with_one_reviewer, 2)
        self.assertEqual(pr_stats.prs_with_two_reviewers, 1)
        self.assertAlmostEqual(pr_stats.avg_reviewers_per_pr, 1.0)

    def test_summary(self):
        summary = self.service.get_assignment_stats().summary

        self.assertEqual(summary.total_users, 3)
        self.assertEqual(summary.active_users, 3)
        self.assertEqual(summary.total_assignments, 3)
        self.assertEqual(summary.most_assigned_user, "Carol")
        self.assertEqual(summary.most_assignments, 2)

    def test_user_stats(self):
        """Тест статистики одного пользователя"""
        stat = self.service.get_user_stats("u3")

        self.assertEqual(stat.username, "Carol")
        self.assertEqual(stat.team_name, "backend")
        self.assertEqual(stat.assignment_count, 2)

    def test_user_stats_counts_inactive_user(self):
        stat = self.service.get_user_stats("u4")

        self.assertFalse(stat.is_active)
        self.assertEqual(stat.assignment_count, 1)

    def test_user_stats_not_found(self):
        with self.assertRaises(NotFound):
            self.service.get_user_stats("missing")

    def test_empty_database(self):
        PullRequest.objects.all().delete()

        report = self.service.get_assignment_stats()

        self.assertEqual(report.pr_stats.total_prs, 0)
        self.assertEqual(report.pr_stats.avg_reviewers_per_pr, 0.0)
        self.assertIsNone(report.summary.most_assigned_user)


class CalculateSummaryTest(SimpleTestCase):
    def _stat(self, user_id, count, is_active=True):
        return UserAssignmentStats(
            user_id=user_id,
            username=f"user-{user_id}",
            team_name="team",
            is_active=is_active,
            assignment_count=count,
        )

    def test_empty(self):
        summary = StatsService.calculate_summary([])

        self.assertEqual(summary.total_users, 0)
        self.assertIsNone(summary.most_assigned_user)

    def test_all_zero_counts(self):
        """Без назначений лидер не определяется"""
        summary = StatsService.calculate_summary([self._stat("a", 0), self._stat("b", 0)])

        self.assertEqual(summary.total_users, 2)
        self.assertIsNone(summary.most_assigned_user)
        self.assertEqual(summary.most_assignments, 0)

    def test_first_maximum_wins(self):
        summary = StatsService.calculate_summary([
            self._stat("a", 3), self._stat("b", 3), self._stat("c", 1, is_active=False),
        ])

        self.assertEqual(summary.most_assigned_user, "user-a")
        self.assertEqual(summary.total_assignments, 7)
        self.assertEqual(summary.active_users, 2)


class InMemoryStatsTest(SimpleTestCase):
    def setUp(self):
        self.state = InMemoryState()
        self.state.add_team("core", [("a", "A", True), ("b", "B", True), ("c", "C", False)])
        self.state.add_pr("pr-1", "a", ["b", "c"])
        self.service = in_memory_services(self.state).stats

    def test_stats_are_recomputed_on_every_call(self):
        """Статистика не кэшируется между запросами"""
        first = self.service.get_assignment_stats()
        self.assertEqual(first.summary.total_assignments, 1)

        self.state.add_pr("pr-2", "a", ["b"])
        second = self.service.get_assignment_stats()

        self.assertEqual(second.summary.total_assignments, 2)
        self.assertEqual(second.pr_stats.total_prs, 2)
        self.assertEqual(self.service.get_user_stats("b").assignment_count, 2)
