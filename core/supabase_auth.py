# core/supabase_auth.py
# DRF authentication class that accepts Supabase-issued JWTs

import logging

import jwt
from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed

logger = logging.getLogger("crew.core")

User = get_user_model()


class SupabaseJWTAuthentication(BaseAuthentication):
    """
    Validates a Supabase access token and maps it to a local user.

    1. Extracts the JWT from the Authorization header
    2. Verifies the signature with SUPABASE_JWT_SECRET (HS256, audience "authenticated")
    3. Finds the local user by email, creating a volunteer on first sign-in

    Tokens this class cannot verify fall through to the next authenticator
    (SimpleJWT, then sessions).
    """

    def authenticate(self, request):
        auth_header = request.headers.get("Authorization", "")

        if not auth_header.startswith("Bearer "):
            return None

        secret = settings.SUPABASE_JWT_SECRET
        if not secret:
            return None

        token = auth_header.split(" ", 1)[1]

        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=["HS256"],
                audience="authenticated",
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationFailed("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.debug(f"Not a Supabase token: {e}")
            return None

        if not payload.get("sub"):
            raise AuthenticationFailed("Invalid token: missing user ID")

        user = self._get_or_create_user(payload)
        if not user.is_active:
            raise AuthenticationFailed("This account is deactivated")

        return (user, payload)

    def authenticate_header(self, request):
        return 'Bearer realm="api"'

    def _get_or_create_user(self, payload: dict):
        email = payload.get("email")
        if not email:
            raise AuthenticationFailed("Token missing email claim")

        user = User.objects.filter(email__iexact=email).first()
        if user is not None:
            return user

        username = email.split("@")[0]
        base_username = username
        counter = 1
        while User.objects.filter(username=username).exists():
            username = f"{base_username}_{counter}"
            counter += 1

        metadata = payload.get("user_metadata") or {}
        user = User.objects.create(
            username=username,
            email=email,
            full_name=metadata.get("full_name", ""),
        )
        user.set_unusable_password()
        user.save(update_fields=["password"])
        logger.info(f"Created new user from Supabase: {email}")
        return user
