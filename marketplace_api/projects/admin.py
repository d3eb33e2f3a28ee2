from django.contrib import admin
from .models import Project


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'client', 'freelancer', 'service_type', 'budget', 'status', 'created_at')
    list_filter = ('status', 'service_type')
    search_fields = ('title', 'client__email', 'freelancer__email')
    readonly_fields = ('paid_at',)
