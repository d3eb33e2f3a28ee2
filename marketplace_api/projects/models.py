from django.db import models
from django.contrib.auth import get_user_model
from auditlog.registry import auditlog
from auditlog.models import AuditlogHistoryField

User = get_user_model()

class Project(models.Model):
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    PAID = 'paid'
    REJECTED = 'rejected'

    STATUS_CHOICES = (
            (PENDING, 'Pending'),
            (IN_PROGRESS, 'In Progress'),
            (COMPLETED, 'Completed'),
            (PAID, 'Paid'),
            (REJECTED, 'Rejected'),
        )

    SERVICE_CHOICES = (
        ('translation', 'Translation'),
        ('voice_over', 'Voice-over'),
        ('dubbing', 'Dubbing'),
        ('other', 'Other'),
    )

    client = models.ForeignKey(User, related_name='client_projects', on_delete=models.PROTECT)
    freelancer = models.ForeignKey(User, related_name='freelancer_projects', on_delete=models.PROTECT)
    title = models.CharField(max_length=255)
    description = models.TextField()
    service_type = models.CharField(max_length=20, choices=SERVICE_CHOICES, default='translation')
    budget = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    history = AuditlogHistoryField()

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(condition=models.Q(budget__gt=0), name='project_budget_positive'),
        ]

    def __str__(self):
        return f"{self.title} ({self.client} -> {self.freelancer})"

    def is_participant(self, user):
        return user.id in (self.client_id, self.freelancer_id)


auditlog.register(Project)
