from django.contrib import admin
from .models import CustomUser, ClientProfile, FreelancerProfile


@admin.register(CustomUser)
class CustomUserAdmin(admin.ModelAdmin):
    list_display = ('id', 'email', 'first_name', 'last_name', 'user_type', 'is_active', 'is_staff', 'created_at')
    list_filter = ('user_type', 'is_active', 'is_staff')
    search_fields = ('email', 'first_name', 'last_name')
    exclude = ('password',)


@admin.register(ClientProfile)
class ClientProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'company_name', 'contact_name', 'balance', 'created_at')
    search_fields = ('user__email', 'company_name', 'contact_name')
    readonly_fields = ('balance',)


@admin.register(FreelancerProfile)
class FreelancerProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'title', 'hourly_rate', 'rating', 'completed_projects', 'balance')
    search_fields = ('user__email', 'title')
    readonly_fields = ('balance',)
