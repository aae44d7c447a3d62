from rest_framework.decorators import api_view

from clinic.models import Role
from clinic.permissions import allow_roles
from clinic.responses import pagination, success_response
from clinic.serializers.users import (DoctorProfileCreateSerializer, DoctorProfileUpdateSerializer,
                                      UserCreateSerializer, UserListQuerySerializer, UserUpdateSerializer,
                                      doctor_profile_data, user_data)
from clinic.services import accounts


@api_view(['GET', 'POST'])
@allow_roles(Role.ADMIN)
def user_collection(request):
    if request.method == 'POST':
        s = UserCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        user = accounts.create_user(request.user, **s.validated_data)
        return success_response(user_data(user), 'User created successfully', status=201)

    q = UserListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    items, total = accounts.list_users(role=vd.get('role'), search=vd.get('search') or None,
                                       page=vd['page'], limit=vd['limit'])
    return success_response({
        'users': [user_data(u) for u in items],
        'pagination': pagination(vd['page'], vd['limit'], total),
    }, 'Users retrieved successfully')


@api_view(['GET', 'PUT', 'DELETE'])
@allow_roles(Role.ADMIN)
def user_detail(request, pk: int):
    if request.method == 'GET':
        return success_response(user_data(accounts.get_user(pk)), 'User retrieved successfully')
    if request.method == 'DELETE':
        accounts.deactivate_user(request.user, pk)
        return success_response(None, 'User deleted successfully')
    s = UserUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    user = accounts.update_user(request.user, pk, **s.validated_data)
    return success_response(user_data(user), 'User updated successfully')


@api_view(['POST', 'PUT'])
@allow_roles(Role.ADMIN, PUT=[Role.ADMIN, Role.DOCTOR])
def doctor_profile(request, pk: int):
    """POST (admin) creates the profile of doctor ``pk``; PUT updates it (admin or that doctor)."""
    if request.method == 'POST':
        s = DoctorProfileCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        profile = accounts.create_doctor_profile(request.user, pk, **s.validated_data)
        return success_response(doctor_profile_data(profile), 'Doctor profile created successfully', status=201)
    s = DoctorProfileUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    profile = accounts.update_doctor_profile(request.user, pk, **s.validated_data)
    return success_response(doctor_profile_data(profile), 'Doctor profile updated successfully')
