from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..serializers import PullRequestShortSerializer, UserSerializer
from ..services import build_services
from .responses import exception_response, request_deadline, validation_error


@api_view(['POST'])
def user_set_active(request):
    """POST /users/setIsActive - Установить флаг активности пользователя"""
    try:
        user_id = request.data.get('user_id')
        is_active = request.data.get('is_active')

        if not user_id or is_active is None:
            return validation_error('user_id and is_active are required')

        if not isinstance(is_active, bool):
            return validation_error('is_active must be a boolean')

        user = build_services().users.set_user_active_status(user_id, is_active, deadline=request_deadline())
        serializer = UserSerializer(user)

        return Response({
            'user': serializer.data
        })

    except Exception as e:
        return exception_response(e, 'users/setIsActive')


@api_view(['GET'])
def users_get_review(request):
    """GET /users/getReview - Получить PR'ы, где пользователь назначен ревьювером"""
    try:
        user_id = request.query_params.get('user_id')

        if not user_id:
            return validation_error('user_id parameter is required')

        assigned_prs = build_services().users.get_user_review_assignments(user_id, deadline=request_deadline())
        serializer = PullRequestShortSerializer(assigned_prs, many=True)

        return Response({
            'user_id': user_id,
            'pull_requests': serializer.data
        })

    except Exception as e:
        return exception_response(e, 'users/getReview')
