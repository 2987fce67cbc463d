"""
Bearer JWT authentication.

The project authenticates every API request with a simplejwt access
token sent as ``Authorization: Bearer <token>``.  The class lives in its
own module so that DRF can import it from settings without pulling in
any view code.
"""
from __future__ import annotations

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed
from rest_framework_simplejwt.tokens import RefreshToken


class BearerJWTAuthentication(JWTAuthentication):
    """JWT authentication that also rejects tokens with a stale role claim.

    simplejwt already refuses inactive users; this subclass additionally
    refuses tokens whose ``role`` claim no longer matches the stored role,
    so a demoted account cannot keep using a token minted before the
    change.
    """

    def get_user(self, validated_token):
        user = super().get_user(validated_token)
        claimed = validated_token.get('role')
        if claimed is not None and claimed != getattr(user, 'role', None):
            raise AuthenticationFailed('token role is stale, please log in again', code='stale_role')
        return user


def issue_tokens(user) -> RefreshToken:
    """Mint a refresh token (and its access token) carrying the user's role."""
    refresh = RefreshToken.for_user(user)
    refresh['role'] = user.role
    refresh['email'] = user.email
    return refresh
