from reviews.models import PullRequest, PullRequestReviewer


def make_pull_request(pr_id, author, reviewers=(), status=PullRequest.Status.OPEN, name="Test PR"):
    pr = PullRequest.objects.create(id=pr_id, name=name, author=author, status=status)
    for position, reviewer in enumerate(reviewers):
        PullRequestReviewer.objects.create(pull_request=pr, user=reviewer, position=position)
    return pr
