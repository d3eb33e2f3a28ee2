from decimal import Decimal

from django.db.models import Sum, Count, Q
from django.db.models.functions import TruncMonth
from rest_framework import generics, permissions, status, views
from rest_framework.response import Response
from rest_framework.exceptions import PermissionDenied
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from accounts.models import ClientProfile, FreelancerProfile
from projects.models import Project
from .exceptions import SettlementError
from .models import Payment, PlatformRevenue
from .serializers import (
	SettlementRequestSerializer,
	SettlementResultSerializer,
	SettlementErrorSerializer,
	PaymentSerializer,
	TransactionWindowSerializer,
)
from .services import SettlementService


class PaymentListCreateView(generics.ListAPIView):
	"""
	GET: settlement records of the authenticated user (all records for staff).
	POST: settle a completed project.
	"""

	serializer_class = PaymentSerializer
	permission_classes = [permissions.IsAuthenticated]

	def get_queryset(self):
		user = self.request.user
		queryset = Payment.objects.select_related("project", "client", "freelancer")

		if user.is_staff:
			return queryset

		user_type = getattr(user, "user_type", None)
		if user_type == "client":
			return queryset.filter(client=user)
		if user_type == "freelancer":
			return queryset.filter(freelancer=user)
		return queryset.none()

	@swagger_auto_schema(
		operation_summary="List settlement records for the current user",
		responses={200: PaymentSerializer(many=True)}
	)
	def get(self, request, *args, **kwargs):
		return super().get(request, *args, **kwargs)

	@swagger_auto_schema(
		operation_summary="Settle a completed project",
		request_body=SettlementRequestSerializer,
		responses={
			200: SettlementResultSerializer(),
			400: SettlementErrorSerializer(),
			402: SettlementErrorSerializer(),
			403: "Forbidden",
			404: SettlementErrorSerializer(),
			409: SettlementErrorSerializer(),
			500: SettlementErrorSerializer(),
			504: SettlementErrorSerializer(),
		}
	)
	def post(self, request, *args, **kwargs):
		serializer = SettlementRequestSerializer(data=request.data)
		if not serializer.is_valid():
			return Response(
				{
					"error_kind": "ValidationError",
					"message": "Missing or invalid payment fields.",
					"errors": serializer.errors,
				},
				status=status.HTTP_400_BAD_REQUEST,
			)
		data = serializer.validated_data

		# Only the paying client (or staff) may move their money.
		if not request.user.is_staff and request.user.id != data["client_id"]:
			raise PermissionDenied("Only the project client can settle this project.")

		try:
			result = SettlementService().settle(
				project_id=data["project_id"],
				client_id=data["client_id"],
				freelancer_id=data["freelancer_id"],
				amount=data["amount"],
			)
		except SettlementError as exc:
			return Response(exc.as_dict(), status=exc.http_status)

		return Response(SettlementResultSerializer(result).data, status=status.HTTP_200_OK)


class AdminStatsView(views.APIView):
	"""Platform revenue and balance overview for administrators."""
	permission_classes = [permissions.IsAdminUser]

	@swagger_auto_schema(operation_summary="Platform statistics (Admin only)")
	def get(self, request):
		total_revenue = PlatformRevenue.objects.aggregate(total=Sum("amount"))["total"] or Decimal("0.00")

		revenue_by_month = {
			row["month"].strftime("%Y-%m"): row["total"]
			for row in PlatformRevenue.objects.annotate(month=TruncMonth("transaction_date"))
			.values("month")
			.annotate(total=Sum("amount"))
			.order_by("month")
		}

		freelancers = [
			{"id": row["pk"], "name": f"{row['user__first_name']} {row['user__last_name']}".strip(), "balance": row["balance"]}
			for row in FreelancerProfile.objects.order_by("-balance").values("pk", "user__first_name", "user__last_name", "balance")
		]
		clients = [
			{"id": row["pk"], "name": row["contact_name"] or row["company_name"], "balance": row["balance"]}
			for row in ClientProfile.objects.order_by("-balance").values("pk", "contact_name", "company_name", "balance")
		]

		recent = Payment.objects.select_related("project", "client", "freelancer")[:10]

		return Response({
			"total_revenue": total_revenue,
			"transactions_count": Payment.objects.count(),
			"projects_by_status": dict(
				Project.objects.values_list("status").annotate(count=Count("id")).order_by()
			),
			"freelancers": freelancers,
			"clients": clients,
			"recent_transactions": PaymentSerializer(recent, many=True).data,
			"revenue_by_month": revenue_by_month,
		}, status=status.HTTP_200_OK)


class AdminTransactionListView(views.APIView):
	"""Settlement records in a date window, with totals (Admin only)."""
	permission_classes = [permissions.IsAdminUser]

	@swagger_auto_schema(
		operation_summary="List settlement records with statistics (Admin only)",
		manual_parameters=[
			openapi.Parameter("start", openapi.IN_QUERY, description="ISO date lower bound", type=openapi.TYPE_STRING),
			openapi.Parameter("end", openapi.IN_QUERY, description="ISO date upper bound", type=openapi.TYPE_STRING),
		],
		responses={400: "Invalid date window"},
	)
	def get(self, request):
		queryset = Payment.objects.select_related("project", "client", "freelancer")

		window = TransactionWindowSerializer(data=request.query_params)
		window.is_valid(raise_exception=True)
		start = window.validated_data.get("start")
		end = window.validated_data.get("end")
		if start:
			queryset = queryset.filter(created_at__date__gte=start)
		if end:
			queryset = queryset.filter(created_at__date__lte=end)

		totals = queryset.aggregate(
			total_transactions=Count("id"),
			total_amount=Sum("amount"),
			total_fees=Sum("platform_fee"),
			completed_transactions=Count("id", filter=Q(status="completed")),
		)
		totals["total_amount"] = totals["total_amount"] or Decimal("0.00")
		totals["total_fees"] = totals["total_fees"] or Decimal("0.00")

		return Response({
			"transactions": PaymentSerializer(queryset, many=True).data,
			"statistics": totals,
		}, status=status.HTTP_200_OK)
