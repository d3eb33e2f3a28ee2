import logging

from rest_framework_simplejwt import views as jwt_views, tokens
from rest_framework import views as drf_Views, generics, permissions, status
from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.filters import SearchFilter, OrderingFilter
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi


from . import serializers as my_serializers
from .utils import send_welcome_email
from .services import add_client_funds, BalanceLimitExceeded
from . import models as my_models, throttles
from .pagination import UserListPagination, ProfileListPagination
from . import permissions as my_permissions

logger = logging.getLogger(__name__)


class CustomTokenObtainPairView(jwt_views.TokenObtainPairView):
    """
    Log in with email and password.

    Throttled per email and per client IP; counters are kept in the shared cache.
    """
    serializer_class = my_serializers.CustomTokenObtainPairSerializer
    throttle_classes = [throttles.LoginEmailRateThrottle, throttles.LoginIPRateThrottle]


class RegistrationAPIView(generics.CreateAPIView):
    """
    Handles new user registration.

    Accepts a POST request with user details:
        - email, password, confirm_password, first_name, last_name, user_type (required)
        - phone_number, country (optional)
        - client or freelancer profile fields (optional)
    Creates a new user with its profile, and returns the user's data along with JWT access and
    refresh tokens.
    """
    serializer_class = my_serializers.RegistrationSerializer
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    @swagger_auto_schema(
        operation_summary="Register a new user",
        responses={
            201: my_serializers.RegistrationSerializer,
            400: "Invalid input"
        }
    )
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            user = serializer.save()
            refresh = tokens.RefreshToken.for_user(user)
            transaction.on_commit(lambda: send_welcome_email(user))

        logger.info("Registered %s account %s", user.user_type, user.email)

        return Response(
            {
                'user': serializer.data,
                'refresh': str(refresh),
                'access': str(refresh.access_token)
            },
            status=status.HTTP_201_CREATED
        )


class UserProfileRetrieveUpdateAPIView(generics.RetrieveUpdateAPIView):
    """
    Allows authenticated users to retrieve and update their own account.

    GET: Returns the account of the currently authenticated user.
    PUT/PATCH: Updates first_name, last_name, phone_number, country.
    The 'id', 'email' and 'user_type' fields are read-only.
    """
    serializer_class = my_serializers.UserProfileSerializer
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(operation_summary="Retrieve user profile")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @swagger_auto_schema(operation_summary="Update user profile")
    def put(self, request, *args, **kwargs):
        return super().put(request, *args, **kwargs)

    @swagger_auto_schema(operation_summary="Partially update user profile")
    def patch(self, request, *args, **kwargs):
        return super().patch(request, *args, **kwargs)

    def get_object(self):
        return self.request.user


class ChangePasswordAPIView(drf_Views.APIView):
    """
    Allows an authenticated user to change their password.

    Method: POST
    Request Body:
        - current password (required)
        - new password with confirmation (required)
    """
    serializer_class = my_serializers.ChangePasswordSerializer
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Change the current user's password",
        request_body=my_serializers.ChangePasswordSerializer,
        responses={
            200: "Password updated successfully",
            400: "Invalid input"
        }
    )
    def post(self, request, *args, **kwargs):
        serializer = self.serializer_class(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        serializer.update(request.user, serializer.validated_data)
        return Response({
            'detail': "Password updated successfully"
        }, status=status.HTTP_200_OK)


class LogoutAPIView(drf_Views.APIView):
    """
    Allows an authenticated user to log out by blacklisting their refresh token.

    Method: POST
    Headers:
        - X-Refresh-Token (required)
    """
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Log out the user by blacklisting their refresh token",
        manual_parameters=[
            openapi.Parameter(
                'X-Refresh-Token',
                openapi.IN_HEADER,
                description="Refresh token to blacklist",
                type=openapi.TYPE_STRING,
                required=True
            )
        ],
        responses={
            200: "Logout successful",
            400: "Invalid token"
        }
    )
    def post(self, request):
        refresh_token = request.headers.get('X-Refresh-Token')
        if not refresh_token:
            return Response({'detail': 'X-Refresh-Token header is required.'}, status=status.HTTP_400_BAD_REQUEST)

        serializer = my_serializers.LogoutSerializer(data={'refresh': refresh_token})
        serializer.is_valid(raise_exception=True)
        serializer.save()

        return Response(
            {'detail': "Logout successful."},
            status=status.HTTP_200_OK
        )


class UserListAPIView(generics.ListAPIView):
    """
    Allows admin users to list all users with filtering and searching.

    Query Parameters:
        - user_type, is_active (filter)
        - search (email, first_name, last_name)
        - ordering (id, last_name, first_name, user_type, created_at)
    """
    serializer_class = my_serializers.UserListSerializer
    permission_classes = [permissions.IsAdminUser]

    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ['user_type', 'is_active']
    search_fields = ['email', 'first_name', 'last_name']
    ordering_fields = ['id', 'last_name', 'first_name', 'user_type', 'created_at']
    ordering = ['-last_name', '-first_name']
    pagination_class = UserListPagination

    @swagger_auto_schema(
        operation_summary="List all users (Admin only)",
        responses={
            200: my_serializers.UserListSerializer(many=True),
            403: "Forbidden"
        }
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        return my_models.CustomUser.objects.all()


class UserDeleteAPIView(generics.UpdateAPIView):
    """
    Allows authenticated users to soft-delete their own account.

    Method: PATCH
    Headers:
        - X-Refresh-Token (optional)
    Sets the account as deleted and blacklists the refresh token if provided.
    """
    serializer_class = my_serializers.UserDeleteSerializer
    permission_classes = [permissions.IsAuthenticated]
    http_method_names = ['patch']

    def get_object(self):
        return self.request.user

    @swagger_auto_schema(
        operation_summary="Soft-delete the current user's account",
        responses={
            200: "Account deleted",
            400: "Invalid input"
        }
    )
    def update(self, request, *args, **kwargs):
        user = self.get_object()

        refresh_token = request.headers.get('X-Refresh-Token')
        if refresh_token:
            try:
                tokens.RefreshToken(refresh_token).blacklist()
            except tokens.TokenError:
                logger.info("Ignoring invalid refresh token on deactivation of %s", user.email)

        serializer = self.get_serializer(user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        self.perform_update(serializer)
        return Response({
            'detail': "Account deleted."
        }, status=status.HTTP_200_OK)


class ClientListAPIView(generics.ListAPIView):
    """List client accounts, newest first. Searchable by name, company and email."""
    serializer_class = my_serializers.ClientProfileSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ['company_name', 'contact_name', 'user__email', 'user__first_name', 'user__last_name']
    ordering_fields = ['created_at', 'company_name']
    ordering = ['-created_at']
    pagination_class = ProfileListPagination

    def get_queryset(self):
        return my_models.ClientProfile.objects.select_related('user').filter(user__is_active=True)


class ClientRetrieveUpdateAPIView(generics.RetrieveUpdateAPIView):
    serializer_class = my_serializers.ClientProfileSerializer
    permission_classes = [permissions.IsAuthenticated, my_permissions.IsProfileOwnerOrReadOnly]
    queryset = my_models.ClientProfile.objects.select_related('user')
    lookup_field = 'pk'
    lookup_url_kwarg = 'id'
    http_method_names = ['get', 'patch']


class ClientBalanceAPIView(drf_Views.APIView):
    """
    GET: current balance of a client account.
    POST: add funds to the balance.

    Only the client themself or staff may use this endpoint.
    """
    permission_classes = [permissions.IsAuthenticated, my_permissions.IsBalanceOwnerOrAdmin]

    @swagger_auto_schema(
        operation_summary="Retrieve a client's balance",
        responses={200: my_serializers.BalanceSerializer, 404: "Not found"}
    )
    def get(self, request, id):
        client = get_object_or_404(my_models.ClientProfile, pk=id)
        return Response(my_serializers.BalanceSerializer(client).data, status=status.HTTP_200_OK)

    @swagger_auto_schema(
        operation_summary="Add funds to a client's balance",
        request_body=my_serializers.AddFundsSerializer,
        responses={200: my_serializers.BalanceSerializer, 400: "Invalid amount", 404: "Not found"}
    )
    def post(self, request, id):
        serializer = my_serializers.AddFundsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            balance = add_client_funds(id, serializer.validated_data['amount'])
        except my_models.ClientProfile.DoesNotExist:
            return Response({'detail': "Client not found."}, status=status.HTTP_404_NOT_FOUND)
        except BalanceLimitExceeded as exc:
            return Response({'detail': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({
            'detail': "Balance updated successfully.",
            'balance': my_serializers.BalanceSerializer({'balance': balance}).data['balance'],
        }, status=status.HTTP_200_OK)


class FreelancerListAPIView(generics.ListAPIView):
    """
    List freelancers.

    Query Parameters:
        - search (title, description, name, services, languages)
        - ordering (rating, hourly_rate, completed_projects, created_at)
    """
    serializer_class = my_serializers.FreelancerProfileSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ['title', 'description', 'user__first_name', 'user__last_name', 'services', 'languages']
    ordering_fields = ['rating', 'hourly_rate', 'completed_projects', 'created_at']
    ordering = ['-rating', '-created_at']
    pagination_class = ProfileListPagination

    def get_queryset(self):
        return my_models.FreelancerProfile.objects.select_related('user').filter(user__is_active=True)


class FreelancerRetrieveUpdateAPIView(generics.RetrieveUpdateAPIView):
    """
    GET: a freelancer profile together with the projects assigned to them.
    PATCH: the freelancer updates their own profile.
    """
    serializer_class = my_serializers.FreelancerProfileSerializer
    permission_classes = [permissions.IsAuthenticated, my_permissions.IsProfileOwnerOrReadOnly]
    queryset = my_models.FreelancerProfile.objects.select_related('user')
    lookup_field = 'pk'
    lookup_url_kwarg = 'id'
    http_method_names = ['get', 'patch']

    def retrieve(self, request, *args, **kwargs):
        from projects.serializers import ProjectSerializer

        freelancer = self.get_object()
        projects = freelancer.user.freelancer_projects.select_related('client', 'freelancer').order_by('-created_at')

        return Response({
            'freelancer': self.get_serializer(freelancer).data,
            'projects': ProjectSerializer(projects, many=True).data,
        }, status=status.HTTP_200_OK)
