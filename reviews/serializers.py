from rest_framework import serializers

DATETIME_FORMAT = '%Y-%m-%dT%H:%M:%SZ'


class TeamMemberSerializer(serializers.Serializer):
    user_id = serializers.CharField(source='id')
    username = serializers.CharField()
    is_active = serializers.BooleanField()


class TeamSerializer(serializers.Serializer):
    team_name = serializers.CharField(source='name')
    members = TeamMemberSerializer(many=True)


class UserSerializer(serializers.Serializer):
    user_id = serializers.CharField(source='id')
    username = serializers.CharField()
    team_name = serializers.CharField()
    is_active = serializers.BooleanField()


class PullRequestSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField(source='id')
    pull_request_name = serializers.CharField(source='name')
    author_id = serializers.CharField()
    status = serializers.CharField()
    assigned_reviewers = serializers.ListField(child=serializers.CharField())
    createdAt = serializers.DateTimeField(source='created_at', format=DATETIME_FORMAT)
    mergedAt = serializers.DateTimeField(source='merged_at', format=DATETIME_FORMAT, allow_null=True)


class PullRequestShortSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField(source='id')
    pull_request_name = serializers.CharField(source='name')
    author_id = serializers.CharField()
    status = serializers.CharField()


class UserAssignmentStatsSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    username = serializers.CharField()
    team_name = serializers.CharField()
    is_active = serializers.BooleanField()
    assignment_count = serializers.IntegerField()


class PRAssignmentStatsSerializer(serializers.Serializer):
    total_prs = serializers.IntegerField()
    open_prs = serializers.IntegerField()
    merged_prs = serializers.IntegerField()
    avg_reviewers_per_pr = serializers.FloatField()
    prs_with_no_reviewers = serializers.IntegerField()
    prs_with_one_reviewer = serializers.IntegerField()
    prs_with_two_reviewers = serializers.IntegerField()


class StatsSummarySerializer(serializers.Serializer):
    total_users = serializers.IntegerField()
    active_users = serializers.IntegerField()
    total_assignments = serializers.IntegerField()
    most_assigned_user = serializers.CharField(allow_null=True)
    most_assignments = serializers.IntegerField()


class AssignmentStatsSerializer(serializers.Serializer):
    user_stats = UserAssignmentStatsSerializer(many=True)
    pr_stats = PRAssignmentStatsSerializer()
    summary = StatsSummarySerializer()
