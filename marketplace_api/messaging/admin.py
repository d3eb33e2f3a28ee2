from django.contrib import admin
from .models import ProjectMessage


@admin.register(ProjectMessage)
class ProjectMessageAdmin(admin.ModelAdmin):
    list_display = ('id', 'project', 'sender', 'is_read', 'created_at')
    list_filter = ('is_read',)
    search_fields = ('content', 'sender__email', 'project__title')
