from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..serializers import TeamSerializer
from ..services import build_services
from .responses import exception_response, request_deadline, validation_error

MEMBER_FIELDS = ['user_id', 'username', 'is_active']


@api_view(['POST'])
def team_add(request):
    """POST /team/add - Создать команду с участниками"""
    try:
        team_name = request.data.get('team_name')
        members_data = request.data.get('members', [])

        if not team_name:
            return validation_error('team_name is required')

        if not isinstance(members_data, list):
            return validation_error('members must be a list')

        for i, member in enumerate(members_data):
            if not isinstance(member, dict) or not all(key in member for key in MEMBER_FIELDS):
                return validation_error(f'Member at index {i} is missing required fields')
            if not isinstance(member['is_active'], bool):
                return validation_error(f'Member at index {i} has non-boolean is_active')

        team = build_services().teams.create_team(team_name, members_data, deadline=request_deadline())
        serializer = TeamSerializer(team)

        return Response({
            'team': serializer.data
        }, status=status.HTTP_201_CREATED)

    except Exception as e:
        return exception_response(e, 'team/add')


@api_view(['GET'])
def team_get(request):
    """GET /team/get - Получить команду с участниками"""
    try:
        team_name = request.query_params.get('team_name')

        if not team_name:
            return validation_error('team_name parameter is required')

        team = build_services().teams.get_team(team_name, deadline=request_deadline())
        serializer = TeamSerializer(team)

        return Response(serializer.data)

    except Exception as e:
        return exception_response(e, 'team/get')


@api_view(['POST'])
def team_bulk_deactivate(request):
    """POST /team/bulkDeactivate - Деактивировать участников команды с переназначением ревью"""
    try:
        team_name = request.data.get('team_name')
        user_ids = request.data.get('user_ids')

        if not team_name:
            return validation_error('team_name is required')

        if user_ids is not None and not isinstance(user_ids, list):
            return validation_error('user_ids must be a list')

        team, reassigned = build_services().teams.deactivate_members(
            team_name, user_ids, deadline=request_deadline(),
        )

        return Response({
            'team': TeamSerializer(team).data,
            'reassigned': reassigned,
        })

    except Exception as e:
        return exception_response(e, 'team/bulkDeactivate')
