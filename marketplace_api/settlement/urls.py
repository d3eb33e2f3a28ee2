from django.urls import path

from . import views

urlpatterns = [
    path("payments/", views.PaymentListCreateView.as_view(), name="payment-list-create"),
    path("admin/stats/", views.AdminStatsView.as_view(), name="admin-stats"),
    path("admin/transactions/", views.AdminTransactionListView.as_view(), name="admin-transactions"),
]
