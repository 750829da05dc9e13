from django.db import models
from django.utils import timezone

from .domain import PullRequestStatus


class Team(models.Model):
    name = models.CharField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'teams'


class User(models.Model):
    id = models.CharField(max_length=50, primary_key=True)
    username = models.CharField(max_length=100)
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name='members')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.username} ({self.id})"

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['team', 'is_active'], name='users_team_active_idx'),
        ]


class PullRequest(models.Model):
    Status = PullRequestStatus

    id = models.CharField(max_length=100, primary_key=True)
    name = models.CharField(max_length=200)
    author = models.ForeignKey(User, on_delete=models.CASCADE, related_name='authored_prs')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.OPEN)
    reviewers = models.ManyToManyField(
        User,
        through='PullRequestReviewer',
        related_name='assigned_prs',
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    merged_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Для сохранений через save() (shell, фикстуры); хранилища пишут merged_at сами через update()
    def clean(self):
        if self.status == self.Status.MERGED and not self.merged_at:
            self.merged_at = timezone.now()

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.name} ({self.id})"

    class Meta:
        db_table = 'pull_requests'
        indexes = [
            models.Index(fields=['status'], name='pull_requests_status_idx'),
        ]


class PullRequestReviewer(models.Model):
    """Слот ревьювера: порядок назначений хранится в ``position``."""
    pull_request = models.ForeignKey(PullRequest, on_delete=models.CASCADE, related_name='review_slots')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='review_slots')
    position = models.PositiveSmallIntegerField()

    def __str__(self):
        return f"{self.pull_request_id}#{self.position} -> {self.user_id}"

    class Meta:
        db_table = 'pull_request_reviewers'
        ordering = ['position']
        constraints = [
            models.UniqueConstraint(fields=['pull_request', 'position'], name='unique_reviewer_position'),
        ]
