from django.contrib import admin

from .models import Payment, PlatformRevenue


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('id', 'project', 'client', 'freelancer', 'amount', 'platform_fee', 'amount_to_freelancer', 'created_at')
    list_filter = ('status', 'created_at')
    search_fields = ('project__title', 'client__email', 'freelancer__email')
    readonly_fields = [field.name for field in Payment._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(PlatformRevenue)
class PlatformRevenueAdmin(admin.ModelAdmin):
    list_display = ('id', 'project', 'amount', 'percentage', 'transaction_date')
    readonly_fields = [field.name for field in PlatformRevenue._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
