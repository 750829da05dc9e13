from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..serializers import PullRequestSerializer
from ..services import build_services
from .responses import exception_response, request_deadline, validation_error


@api_view(['POST'])
def pullrequest_create(request):
    """POST /pullRequest/create - Создать PR"""
    try:
        pr_id = request.data.get('pull_request_id')
        pr_name = request.data.get('pull_request_name')
        author_id = request.data.get('author_id')

        if not all([pr_id, pr_name, author_id]):
            return validation_error('pull_request_id, pull_request_name, and author_id are required')

        pr = build_services().pull_requests.create_pull_request(
            pr_id, pr_name, author_id, deadline=request_deadline(),
        )
        serializer = PullRequestSerializer(pr)

        return Response({
            'pr': serializer.data
        }, status=status.HTTP_201_CREATED)

    except Exception as e:
        return exception_response(e, 'pullRequest/create')


@api_view(['POST'])
def pullrequest_merge(request):
    """POST /pullRequest/merge - Пометить PR как MERGED"""
    try:
        pr_id = request.data.get('pull_request_id')

        if not pr_id:
            return validation_error('pull_request_id is required')

        pr = build_services().pull_requests.merge_pull_request(pr_id, deadline=request_deadline())
        serializer = PullRequestSerializer(pr)

        return Response({
            'pr': serializer.data
        })

    except Exception as e:
        return exception_response(e, 'pullRequest/merge')


@api_view(['POST'])
def pullrequest_reassign(request):
    """POST /pullRequest/reassign - Переназначить ревьювера"""
    try:
        pr_id = request.data.get('pull_request_id')
        old_user_id = request.data.get('old_user_id')

        if not all([pr_id, old_user_id]):
            return validation_error('pull_request_id and old_user_id are required')

        pr, new_reviewer_id = build_services().pull_requests.reassign_reviewer(
            pr_id, old_user_id, deadline=request_deadline(),
        )
        serializer = PullRequestSerializer(pr)

        return Response({
            'pr': serializer.data,
            'replaced_by': new_reviewer_id
        })

    except Exception as e:
        return exception_response(e, 'pullRequest/reassign')
