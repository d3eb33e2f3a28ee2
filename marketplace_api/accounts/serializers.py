from decimal import Decimal

from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.exceptions import AuthenticationFailed
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoPasswordValidationError
from django.db import transaction
from django.utils import timezone


from .models import CustomUser, ClientProfile, FreelancerProfile


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Serializer for user login and token generation.

    Fields:
        - email (required)
        - password (required)
    Rejects deactivated accounts before issuing tokens and returns the user's role
    alongside the token pair.
    """
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['user_type'] = user.user_type
        return token

    def validate(self, attrs):
        user = CustomUser.objects.filter(email=attrs.get('email')).first()
        if user is not None and user.deleted_at is not None:
            raise AuthenticationFailed("Your account is deactivated.")

        data = super().validate(attrs)
        data['user_id'] = self.user.id
        data['user_type'] = self.user.user_type

        return data


class RegistrationSerializer(serializers.ModelSerializer):
    """
    Serializer for user registration.

    Fields :
        required: first_name, last_name, user_type, email, password, confirm_password
        optional: phone_number, country
        client only: company_name, contact_name, industry
        freelancer only: title, description, hourly_rate, languages, services
    Validates password confirmation and creates the user together with its
    client or freelancer profile.
    """
    password = serializers.CharField(required=True, write_only=True)
    confirm_password = serializers.CharField(required=True, write_only=True)

    company_name = serializers.CharField(required=False, allow_blank=True, write_only=True)
    contact_name = serializers.CharField(required=False, allow_blank=True, write_only=True)
    industry = serializers.CharField(required=False, allow_blank=True, write_only=True)

    title = serializers.CharField(required=False, allow_blank=True, write_only=True)
    description = serializers.CharField(required=False, allow_blank=True, write_only=True)
    hourly_rate = serializers.DecimalField(
        required=False, max_digits=10, decimal_places=2, min_value=Decimal('0'), write_only=True
    )
    languages = serializers.ListField(child=serializers.CharField(), required=False, write_only=True)
    services = serializers.ListField(child=serializers.CharField(), required=False, write_only=True)

    CLIENT_FIELDS = ('company_name', 'contact_name', 'industry')
    FREELANCER_FIELDS = ('title', 'description', 'hourly_rate', 'languages', 'services')

    class Meta:
        model = CustomUser
        fields = [
            'id', 'first_name', 'last_name', 'user_type', 'phone_number', 'country', 'email',
            'password', 'confirm_password',
            'company_name', 'contact_name', 'industry',
            'title', 'description', 'hourly_rate', 'languages', 'services',
        ]
        read_only_fields = ['id']
        extra_kwargs = {
            'first_name': {'required': True},
            'last_name': {'required': True},
            'email': {'required': True},
            'user_type': {'required': True}
        }

    def validate(self, attrs):
        if attrs['password'] != attrs['confirm_password']:
            raise serializers.ValidationError("Passwords do not match.")
        prospective_user = CustomUser(
            email=attrs.get('email'),
            first_name=attrs.get('first_name'),
            last_name=attrs.get('last_name'),
            user_type=attrs.get('user_type'),
            phone_number=attrs.get('phone_number', '')
        )

        try:
            validate_password(attrs['password'], user=prospective_user)
        except DjangoPasswordValidationError as exc:
            raise serializers.ValidationError({'password': list(exc.messages)})

        return attrs

    def create(self, validated_data):
        validated_data.pop('confirm_password')
        client_data = {f: validated_data.pop(f) for f in self.CLIENT_FIELDS if f in validated_data}
        freelancer_data = {f: validated_data.pop(f) for f in self.FREELANCER_FIELDS if f in validated_data}

        with transaction.atomic():
            user = CustomUser.objects.create_user(**validated_data)

            if user.user_type == CustomUser.CLIENT:
                client_data.setdefault('contact_name', user.get_full_name())
                ClientProfile.objects.create(user=user, **client_data)
            else:
                FreelancerProfile.objects.create(user=user, **freelancer_data)

        return user


class UserProfileSerializer(serializers.ModelSerializer):
    """
    Serializer for user profile retrieval and updates.

    Fields:
        read-only: id, email, user_type
        - first_name, last_name, phone_number, country
    Handles profile data with read-only fields for security.
    """
    class Meta:
        model = CustomUser
        fields = ('id', 'first_name', 'last_name', 'email', 'phone_number', 'user_type', 'country', 'is_staff')
        read_only_fields = ('id', 'email', 'user_type', 'is_staff')


class ChangePasswordSerializer(serializers.Serializer):
    """
    Serializer for changing user password.

    Fields (all are required):
        - old_password
        - new_password
        - confirm_password
    Validates old password and ensures new passwords match.
    """
    old_password = serializers.CharField(required=True)
    new_password = serializers.CharField(required=True)
    confirm_password = serializers.CharField(required=True)

    def validate(self, attrs):
        user = self.context['request'].user

        if not user.check_password(attrs['old_password']):
            raise serializers.ValidationError("Incorrect Password.")

        if attrs['new_password'] != attrs['confirm_password']:
            raise serializers.ValidationError("Passwords do not match.")

        try:
            validate_password(attrs['new_password'], user=user)
        except DjangoPasswordValidationError as exc:
            raise serializers.ValidationError({'new_password': list(exc.messages)})

        return attrs

    def update(self, instance, validated_data):
        instance.set_password(validated_data['new_password'])
        instance.save()

        return instance


class LogoutSerializer(serializers.Serializer):
    """
    Serializer for user logout.

    Fields:
        - refresh (required)
    Blacklists the provided refresh token to invalidate the session.
    """
    refresh = serializers.CharField()

    def save(self, **kwargs):
        try:
            token = RefreshToken(self.validated_data['refresh'])
            token.blacklist()
        except TokenError:
            raise serializers.ValidationError("Token is invalid or expired.")


class UserListSerializer(serializers.ModelSerializer):
    """
    Serializer for listing users.

    Fields (all read-only): id, email, first_name, last_name, user_type, is_active,
    is_staff, created_at, updated_at, deleted_at.
    """
    class Meta:
        model = CustomUser
        fields = ['id', 'email', 'first_name', 'last_name', 'user_type', 'is_active', 'is_staff', 'created_at', 'updated_at', 'deleted_at']


class UserDeleteSerializer(serializers.ModelSerializer):
    """
    Serializer for soft deleting users.
    Performs soft delete by setting deleted_at timestamp and deactivating user.
    """
    class Meta:
        model = CustomUser
        fields = ['id', 'email', 'is_active', 'deleted_at']
        read_only_fields = ['id', 'email', 'is_active', 'deleted_at']

    def update(self, instance, validated_data):
        instance.deleted_at = timezone.now()
        instance.is_active = False
        instance.save(update_fields=['deleted_at', 'is_active'])
        return instance


class UserSummarySerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = CustomUser
        fields = ['id', 'full_name', 'email', 'country']


class ClientProfileSerializer(serializers.ModelSerializer):
    """
    Client profile. The balance is read-only here: it only changes through
    the add-funds endpoint and settlement.
    """
    id = serializers.IntegerField(source='user_id', read_only=True)
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = ClientProfile
        fields = ['id', 'user', 'company_name', 'contact_name', 'industry', 'balance', 'created_at', 'updated_at']
        read_only_fields = ['id', 'user', 'balance', 'created_at', 'updated_at']


class FreelancerProfileSerializer(serializers.ModelSerializer):
    """
    Freelancer profile. Balance and rating statistics are maintained by the platform.
    """
    id = serializers.IntegerField(source='user_id', read_only=True)
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = FreelancerProfile
        fields = [
            'id', 'user', 'title', 'description', 'hourly_rate', 'languages', 'services',
            'rating', 'reviews_count', 'completed_projects', 'response_time', 'balance',
            'created_at',
        ]
        read_only_fields = ['id', 'user', 'rating', 'reviews_count', 'completed_projects', 'balance', 'created_at']

    def validate_hourly_rate(self, value):
        if value < 0:
            raise serializers.ValidationError("Hourly rate cannot be negative.")
        return value


class BalanceSerializer(serializers.Serializer):
    balance = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)


class AddFundsSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
