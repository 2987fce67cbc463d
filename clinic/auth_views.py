"""
Authentication views.

Staff log in with e-mail and password and receive a JWT pair whose
access token carries their role, together with the path of the front-end
area they belong to.  Registration of new staff accounts is reserved to
administrators.  These views are kept apart from
``clinic.authentication`` so that importing the authentication class
from settings never imports view code.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from django.db import transaction
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from clinic.authentication import issue_tokens
from clinic.exceptions import ConflictError, ValidationError
from clinic.models import Role, User
from clinic.permissions import Operation, allow
from clinic.serializers.auth import LoginSerializer, LogoutSerializer, RegisterSerializer
from clinic.services.audit import log_action
from clinic.services.identifiers import next_staff_id

logger = logging.getLogger(__name__)

REDIRECTS = {
    Role.ADMIN: '/',
    Role.DOCTOR: '/doctor',
    Role.RECEPTIONIST: '/receptionist',
}


def serialize_user(user: User) -> dict:
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'staffId': user.staff_id,
        'specialization': user.specialization,
        'phone': user.phone,
        'status': user.status,
        'avatar': user.avatar,
    }


def _split_name(name: str) -> tuple[str, str]:
    first, _, last = name.strip().partition(' ')
    return first[:150], last.strip()[:150]


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """Log a staff member in with e-mail (or username) and password."""
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    username = (vd.get('email') or vd.get('username')).lower()

    user = authenticate(request, username=username, password=vd['password'])
    if not user:
        logger.info('failed login for %s', username)
        log_action(user=None, action='login', object_type='user', object_id=None,
                   detail={'result': 'fail', 'username': username, 'ip': request.META.get('REMOTE_ADDR')})
        return Response({'ok': False, 'error': {'code': 'invalid_credentials', 'message': 'invalid email or password'}},
                        status=status.HTTP_401_UNAUTHORIZED)

    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})
    refresh = issue_tokens(user)
    return Response({
        'ok': True,
        'access': str(refresh.access_token),
        'refresh': str(refresh),
        'role': user.role,
        'user': serialize_user(user),
        'redirectUrl': REDIRECTS.get(user.role, '/'),
    })

# ScopedRateThrottle reads throttle_scope from the wrapped APIView class
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([IsAuthenticated, allow(Operation.STAFF_REGISTER)])
def register_view(request):
    """Create a staff account.  Role defaults to receptionist."""
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    email = vd['email'].lower()
    if User.objects.filter(email__iexact=email).exists():
        raise ConflictError('a user with this email already exists')

    first, last = _split_name(vd['name'])
    with transaction.atomic():
        user = User.objects.create_user(
            username=email,
            email=email,
            password=vd['password'],
            first_name=first,
            last_name=last,
            role=vd['role'],
            phone=vd.get('phone', ''),
            specialization=vd.get('specialization', ''),
            staff_id=next_staff_id(vd['role']),
        )
    log_action(user=request.user, action='staff_register', object_type='user', object_id=user.id,
               detail={'role': user.role})
    return Response({'ok': True, 'user': serialize_user(user)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'ok': True, 'user': serialize_user(request.user)})


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    view = TokenRefreshView.as_view()
    resp = view(request._request)
    if resp.status_code != 200:
        return Response({'ok': False, 'error': {'code': 'token_not_valid', 'message': 'refresh token is invalid or expired'}},
                        status=status.HTTP_401_UNAUTHORIZED)
    return Response({'ok': True, **resp.data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token, or every outstanding token of the user."""
    s = LogoutSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    refresh = s.validated_data.get('refresh')
    count = 0
    if refresh:
        try:
            token = RefreshToken(refresh)
        except TokenError as e:
            raise ValidationError({'refresh': str(e)})
        if token.get('user_id') is not None and str(token['user_id']) != str(request.user.id):
            raise ValidationError({'refresh': 'token does not belong to the current user'})
        token.blacklist()
        count = 1
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    log_action(user=request.user, action='logout', object_type='user', object_id=request.user.id,
               detail={'blacklisted': count})
    return Response({'ok': True, 'blacklisted': count})
