from decimal import Decimal

from django.db import models
from django.conf import settings
from django.contrib.auth.models import AbstractUser, BaseUserManager, UserManager
from country_list import countries_for_language
from auditlog.registry import auditlog
from auditlog.models import AuditlogHistoryField


class CustomUserManager(BaseUserManager):
    """
    Manager for CustomUser. Handles user and superuser creation using email as the unique identifier.
    """
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Email is required.")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        return self.create_user(email, password, **extra_fields)


class ActiveUserManager(UserManager):
    """
    Manager for active users only (is_active=True, deleted_at=None).
    """
    def get_queryset(self):
        return super().get_queryset().filter(is_active=True, deleted_at__isnull=True)


class CustomUser(AbstractUser):
    """
    Marketplace user. Logs in with email and is either a client (buys translation,
    voice-over or dubbing work) or a freelancer (delivers it). Staff users administer
    the platform; role checks always read this record, never a client-side flag.
    """
    CLIENT = 'client'
    FREELANCER = 'freelancer'
    USER_TYPE_CHOICES = (
        (FREELANCER, 'Freelancer'),
        (CLIENT, 'Client'),
    )

    user_type = models.CharField(max_length=20, choices=USER_TYPE_CHOICES)
    phone_number = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=50, choices=countries_for_language('en'), blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    email = models.EmailField(unique=True, blank=False)
    deleted_at = models.DateTimeField(null=True, blank=True)
    username = None

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name',]

    objects = CustomUserManager()
    active_objects = ActiveUserManager()

    history = AuditlogHistoryField()

    def __str__(self):
        return self.email

    @property
    def is_client(self):
        return self.user_type == self.CLIENT

    @property
    def is_freelancer(self):
        return self.user_type == self.FREELANCER


class ClientProfile(models.Model):
    """Client account. The balance holds prepaid funds and is debited by settlement."""
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='client_profile',
    )
    company_name = models.CharField(max_length=255, blank=True)
    contact_name = models.CharField(max_length=255, blank=True)
    industry = models.CharField(max_length=120, blank=True)
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    history = AuditlogHistoryField()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance__gte=0),
                name='client_balance_non_negative',
            ),
        ]

    def __str__(self):
        return f"Client {self.user.email} ({self.balance})"


class FreelancerProfile(models.Model):
    """Freelancer account. The balance accumulates settlement payouts."""
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='freelancer_profile',
    )
    title = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    languages = models.JSONField(default=list, blank=True)
    services = models.JSONField(default=list, blank=True)
    rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal('0.00'))
    reviews_count = models.PositiveIntegerField(default=0)
    completed_projects = models.PositiveIntegerField(default=0)
    response_time = models.CharField(max_length=20, default='0h')
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    history = AuditlogHistoryField()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance__gte=0),
                name='freelancer_balance_non_negative',
            ),
        ]

    def __str__(self):
        return f"Freelancer {self.user.email} ({self.balance})"


auditlog.register(CustomUser, exclude_fields=['password', 'last_login'])
auditlog.register(ClientProfile)
auditlog.register(FreelancerProfile)
