from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..serializers import AssignmentStatsSerializer, UserAssignmentStatsSerializer
from ..services import build_services
from .responses import exception_response, request_deadline, validation_error


@api_view(['GET'])
def stats_assignments(request):
    """
    GET /stats/assignments - Статистика назначений по пользователям и PR
    """
    try:
        stats = build_services().stats.get_assignment_stats(deadline=request_deadline())
        serializer = AssignmentStatsSerializer(stats)
        return Response(serializer.data)

    except Exception as e:
        return exception_response(e, 'stats/assignments')


@api_view(['GET'])
def stats_user(request):
    """
    GET /stats/user - Статистика назначений пользователя
    """
    try:
        user_id = request.query_params.get('user_id')

        if not user_id:
            return validation_error('user_id parameter is required')

        stats = build_services().stats.get_user_stats(user_id, deadline=request_deadline())
        serializer = UserAssignmentStatsSerializer(stats)
        return Response(serializer.data)

    except Exception as e:
        return exception_response(e, 'stats/user')
