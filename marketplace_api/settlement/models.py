from django.db import models
from auditlog.registry import auditlog
from auditlog.models import AuditlogHistoryField


from accounts.models import CustomUser
from projects.models import Project


class PlatformRevenue(models.Model):
    """Fee retained by the platform for one settlement. Append-only."""
    project = models.ForeignKey(Project, on_delete=models.PROTECT, related_name='platform_revenue')
    client = models.ForeignKey(CustomUser, on_delete=models.PROTECT, related_name='+')
    freelancer = models.ForeignKey(CustomUser, on_delete=models.PROTECT, related_name='+')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    percentage = models.DecimalField(max_digits=5, decimal_places=4)
    transaction_date = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-transaction_date']

    def __str__(self):
        return f"Fee {self.amount} for {self.project.title}"


class Payment(models.Model):
    """
    Settlement record of a project. One per project: the unique project
    reference is what makes a second settlement impossible at the database level.
    """
    STATUS_CHOICES = (
        ('completed', 'Completed'),
    )

    project = models.OneToOneField(Project, on_delete=models.PROTECT, related_name='payment')
    client = models.ForeignKey(CustomUser, on_delete=models.PROTECT, related_name='payments_made')
    freelancer = models.ForeignKey(CustomUser, on_delete=models.PROTECT, related_name='payments_received')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    platform_fee = models.DecimalField(max_digits=12, decimal_places=2)
    amount_to_freelancer = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='completed')
    created_at = models.DateTimeField(auto_now_add=True)

    history = AuditlogHistoryField()

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Payment of {self.amount} for {self.project.title}"


auditlog.register(Payment)
