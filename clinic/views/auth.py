"""
Account endpoints: registration, login, token refresh, own profile and
password change.  Only register, login and refresh are public.
"""
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer

from clinic.authentication import issue_tokens
from clinic.exceptions import Unauthorized
from clinic.permissions import allow_roles
from clinic.responses import success_response
from clinic.serializers.auth import (ChangePasswordSerializer, LoginSerializer, ProfileUpdateSerializer,
                                     RefreshSerializer, RegisterSerializer)
from clinic.serializers.users import user_data
from clinic.services import accounts
from clinic.throttling import LoginRateThrottle


def _client_ip(request):
    return request.META.get('REMOTE_ADDR')


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def register(request):
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = accounts.register(ip=_client_ip(request), **s.validated_data)
    return success_response({'user': user_data(user), **issue_tokens(user)},
                            'User registered successfully', status=201)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = accounts.authenticate_user(s.validated_data['email'], s.validated_data['password'],
                                      ip=_client_ip(request))
    return success_response({'user': user_data(user), **issue_tokens(user)}, 'Login successful')


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def refresh(request):
    s = RefreshSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    t = TokenRefreshSerializer(data={'refresh': s.validated_data['refresh']})
    try:
        t.is_valid(raise_exception=True)
    except TokenError as e:
        raise Unauthorized(str(e))
    data = {'accessToken': t.validated_data['access']}
    if 'refresh' in t.validated_data:
        data['refreshToken'] = t.validated_data['refresh']
    return success_response(data, 'Token refreshed')


@api_view(['GET', 'PUT'])
@allow_roles()
def profile(request):
    if request.method == 'GET':
        return success_response(user_data(request.user), 'Profile retrieved successfully')
    s = ProfileUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    user = accounts.update_profile(request.user, **s.validated_data)
    return success_response(user_data(user), 'Profile updated successfully')


@api_view(['PUT'])
@allow_roles()
def change_password(request):
    s = ChangePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    accounts.change_password(request.user, s.validated_data['current_password'], s.validated_data['new_password'])
    return success_response(None, 'Password changed successfully')
