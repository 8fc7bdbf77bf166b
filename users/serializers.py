from rest_framework import serializers
from .models import User


class UserSerializer(serializers.ModelSerializer):
    is_admin = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = [
            'id',
            'username',
            'email',
            'full_name',
            'role',
            'is_admin',
            'is_active',
            'phone',
            'bio',
            'avatar_url',
            'skills',
            'availability',
            'postal_code',
            'street',
            'city',
            'region',
            'is_first_login',
            'date_joined',
        ]
        read_only_fields = fields


class UpdateProfileSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False, min_length=8)

    class Meta:
        model = User
        fields = [
            'full_name',
            'phone',
            'bio',
            'skills',
            'availability',
            'postal_code',
            'street',
            'city',
            'region',
            'is_first_login',
            'password',
        ]

    def validate_skills(self, value):
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise serializers.ValidationError("Must be a list of strings.")
        return value

    def validate_availability(self, value):
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise serializers.ValidationError("Must be a list of strings.")
        return value

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance


class RoleChangeSerializer(serializers.Serializer):
    to_role = serializers.ChoiceField(
        choices=[User.ROLE_VOLUNTEER, User.ROLE_CAPTAIN],
        required=False,
        default=User.ROLE_VOLUNTEER,
    )
