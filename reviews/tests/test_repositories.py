from unittest import mock

from django.db import OperationalError
from django.test import TestCase
from django.utils import timezone

from reviews.domain import MergeOutcome, PullRequestRecord, PullRequestStatus, TeamRecord, UserRecord
from reviews.exceptions import NotFound, PullRequestExists, PullRequestMerged, StorageError, TeamExists
from reviews.models import PullRequest, Team, User
from reviews.repositories import DjangoPullRequestStore, DjangoTeamStore, DjangoUserStore
from reviews.tests.helpers import make_pull_request


class DjangoPullRequestStoreTest(TestCase):
    def setUp(self):
        self.store = DjangoPullRequestStore()
        self.team = Team.objects.create(name="backend")
        self.author = User.objects.create(id="a", username="author", team=self.team)
        self.r1 = User.objects.create(id="r1", username="r1", team=self.team)
        self.r2 = User.objects.create(id="r2", username="r2", team=self.team)

    def test_create_keeps_reviewer_order(self):
        pr = self.store.create(PullRequestRecord(
            id="pr-1", name="Feature", author_id="a", assigned_reviewers=["r2", "r1"],
        ))

        self.assertEqual(pr.assigned_reviewers, ["r2", "r1"])
        self.assertEqual(pr.status, PullRequestStatus.OPEN)
        self.assertIsNotNone(pr.created_at)
        self.assertIsNone(pr.merged_at)

    def test_create_duplicate(self):
        make_pull_request("pr-1", self.author)

        with self.assertRaises(PullRequestExists):
            self.store.create(PullRequestRecord(id="pr-1", name="Other", author_id="a"))

    def test_merge_outcomes(self):
        """Условный мерж различает обновление, повтор и отсутствие PR"""
        make_pull_request("pr-1", self.author, [self.r1])
        merged_at = timezone.now()

        self.assertIs(self.store.merge("pr-1", merged_at), MergeOutcome.UPDATED)
        self.assertIs(self.store.merge("pr-1", timezone.now()), MergeOutcome.ALREADY_MERGED)
        self.assertIs(self.store.merge("missing", timezone.now()), MergeOutcome.NOT_FOUND)

        self.assertEqual(PullRequest.objects.get(id="pr-1").merged_at, merged_at)

    def test_update_rewrites_slots(self):
        make_pull_request("pr-1", self.author, [self.r1, self.r2])
        pr = self.store.get_by_id("pr-1")
        pr.assigned_reviewers = ["r2", "r2"]

        updated = self.store.update(pr)

        self.assertEqual(updated.assigned_reviewers, ["r2", "r2"])

    def test_stale_update_does_not_reopen_merged_pr(self):
        """Запись по устаревшему чтению не возвращает смерженный PR в OPEN"""
        make_pull_request("pr-1", self.author, [self.r1])
        stale = self.store.get_by_id("pr-1")
        merged_at = timezone.now()
        self.store.merge("pr-1", merged_at)

        stale.assigned_reviewers = ["r2"]
        with self.assertRaises(PullRequestMerged):
            self.store.update(stale)

        pr = self.store.get_by_id("pr-1")
        self.assertEqual(pr.status, PullRequestStatus.MERGED)
        self.assertEqual(pr.merged_at, merged_at)
        self.assertEqual(pr.assigned_reviewers, ["r1"])
        self.assertIs(self.store.merge("pr-1", timezone.now()), MergeOutcome.ALREADY_MERGED)

    def test_update_missing(self):
        with self.assertRaises(NotFound):
            self.store.update(PullRequestRecord(id="missing", name="x", author_id="a"))

    def test_get_by_reviewer_lists_each_pr_once(self):
        make_pull_request("pr-1", self.author, [self.r1, self.r1])
        make_pull_request("pr-2", self.author, [self.r2])

        prs = self.store.get_by_reviewer("r1")

        self.assertEqual([pr.id for pr in prs], ["pr-1"])

    def test_get_open_by_reviewer(self):
        make_pull_request("pr-1", self.author, [self.r1])
        make_pull_request("pr-2", self.author, [self.r1], status=PullRequest.Status.MERGED)

        self.assertEqual([pr.id for pr in self.store.get_open_by_reviewer("r1")], ["pr-1"])

    def test_database_error_wrapped(self):
        """Ошибки БД превращаются в StorageError"""
        with mock.patch.object(PullRequest.objects, 'filter', side_effect=OperationalError("db is down")):
            with self.assertRaises(StorageError):
                self.store.exists("pr-1")


class DjangoTeamStoreTest(TestCase):
    def setUp(self):
        self.store = DjangoTeamStore()

    def test_create_and_get(self):
        team = self.store.create(TeamRecord(name="backend", members=[
            UserRecord(id="u2", username="Bob", team_name="backend"),
            UserRecord(id="u1", username="Alice", team_name="backend", is_active=False),
        ]))

        self.assertEqual([member.id for member in team.members], ["u1", "u2"])
        self.assertFalse(team.members[0].is_active)
        self.assertTrue(self.store.exists("backend"))

    def test_create_existing(self):
        Team.objects.create(name="backend")

        with self.assertRaises(TeamExists):
            self.store.create(TeamRecord(name="backend"))

    def test_get_missing(self):
        with self.assertRaises(NotFound):
            self.store.get_by_name("missing")


class DjangoUserStoreTest(TestCase):
    def setUp(self):
        self.store = DjangoUserStore()
        self.team = Team.objects.create(name="backend")
        User.objects.create(id="u1", username="Zed", team=self.team)
        User.objects.create(id="u2", username="Amy", team=self.team)
        User.objects.create(id="u3", username="Max", team=self.team, is_active=False)

    def test_active_members_excluding(self):
        users = self.store.get_active_team_members_excluding("backend", ["u1"])

        self.assertEqual([user.id for user in users], ["u2"])

    def test_set_active_missing(self):
        with self.assertRaises(NotFound):
            self.store.set_active("missing", False)

    def test_save_requires_team(self):
        with self.assertRaises(NotFound):
            self.store.save(UserRecord(id="u9", username="New", team_name="missing"))

    def test_deactivate(self):
        self.assertEqual(self.store.deactivate(["u1", "u2", "missing"]), 2)
        self.assertFalse(User.objects.filter(is_active=True).exists())
