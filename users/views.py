# users/views.py

import logging
import os

from django.contrib.auth import get_user_model
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core import address_lookup, supabase_client
from core.exceptions import ValidationError
from events import roles
from events.policies import CrewPolicy
from .serializers import RoleChangeSerializer, UpdateProfileSerializer, UserSerializer
from .services import deactivate_user

logger = logging.getLogger("crew.users")

User = get_user_model()

AVATAR_CONTENT_TYPES = ("image/jpeg", "image/png", "image/webp")
AVATAR_MAX_BYTES = 5 * 1024 * 1024


class UserViewSet(viewsets.ReadOnlyModelViewSet):
    """
    GET  /api/users/                      admins and captains; ?role=captain&active=true
    GET  /api/users/{id}/
    GET|PATCH /api/users/me/
    POST /api/users/me/avatar/            multipart "file"
    GET  /api/users/address-lookup/?postal_code=01001000
    POST /api/users/{id}/promote-captain/ (admin)
    POST /api/users/{id}/demote-volunteer/ (admin)
    POST /api/users/{id}/promote-admin/   (admin)
    POST /api/users/{id}/demote-admin/    (admin) body: {"to_role": "volunteer" | "captain"}
    POST /api/users/{id}/deactivate/      (admin)
    """
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated]
    parser_classes = [JSONParser, FormParser, MultiPartParser]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        user = self.request.user
        qs = User.objects.all().order_by('full_name', 'username')

        # Volunteers only ever see themselves
        if not (CrewPolicy.is_admin(user) or user.role == User.ROLE_CAPTAIN):
            return qs.filter(pk=user.pk)

        role = self.request.query_params.get('role')
        if role:
            qs = qs.filter(role=role)

        active = self.request.query_params.get('active')
        if active is not None:
            qs = qs.filter(is_active=active.lower() in ('1', 'true', 'yes'))

        search = self.request.query_params.get('search')
        if search:
            qs = qs.filter(full_name__icontains=search) | qs.filter(username__icontains=search)

        return qs

    @action(detail=False, methods=['get', 'patch'])
    def me(self, request):
        if request.method == 'PATCH':
            serializer = UpdateProfileSerializer(request.user, data=request.data, partial=True)
            if not serializer.is_valid():
                raise ValidationError(serializer.errors)
            serializer.save()
        return Response(UserSerializer(request.user).data)

    @action(detail=False, methods=['post'], url_path='me/avatar')
    def avatar(self, request):
        upload = request.FILES.get('file')
        if upload is None:
            raise ValidationError({"file": "An image file is required."})
        if upload.content_type not in AVATAR_CONTENT_TYPES:
            raise ValidationError({"file": "Only JPEG, PNG or WebP images are accepted."})
        if upload.size > AVATAR_MAX_BYTES:
            raise ValidationError({"file": "Image must be 5 MB or smaller."})

        extension = os.path.splitext(upload.name)[1].lower() or ".jpg"
        path = f"avatars/{request.user.id}/avatar{extension}"
        url = supabase_client.put(path, upload.read(), content_type=upload.content_type)

        request.user.avatar_url = url
        request.user.save(update_fields=['avatar_url'])
        return Response(UserSerializer(request.user).data)

    @action(detail=False, methods=['get'], url_path='address-lookup')
    def address_lookup(self, request):
        return Response(address_lookup.lookup(request.query_params.get('postal_code', '')))

    @action(detail=True, methods=['post'], url_path='promote-captain')
    def promote_captain(self, request, pk=None):
        user = roles.promote_to_captain(int(pk), request.user)
        return Response(UserSerializer(user).data)

    @action(detail=True, methods=['post'], url_path='demote-volunteer')
    def demote_volunteer(self, request, pk=None):
        user = roles.demote_to_volunteer(int(pk), request.user)
        return Response(UserSerializer(user).data)

    @action(detail=True, methods=['post'], url_path='promote-admin')
    def promote_admin(self, request, pk=None):
        user = roles.promote_to_admin(int(pk), request.user)
        return Response(UserSerializer(user).data)

    @action(detail=True, methods=['post'], url_path='demote-admin')
    def demote_admin(self, request, pk=None):
        serializer = RoleChangeSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError(serializer.errors)
        user = roles.demote_from_admin(int(pk), request.user, to_role=serializer.validated_data['to_role'])
        return Response(UserSerializer(user).data)

    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        user = deactivate_user(int(pk), request.user)
        return Response(UserSerializer(user).data, status=status.HTTP_200_OK)
