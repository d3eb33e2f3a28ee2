from decimal import Decimal
from unittest import mock

from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import CustomUser, ClientProfile, FreelancerProfile
from projects.models import Project
from settlement.calculator import split_amount, fee_percentage, get_platform_fee_rate, to_money
from settlement.exceptions import (
    SettlementValidationError,
    InsufficientFunds,
    ProjectNotFound,
    ClientNotFound,
    FreelancerNotFound,
    AlreadySettled,
    InvalidProjectState,
    PartialFailure,
    SettlementTimeout,
)
from settlement.models import Payment, PlatformRevenue
from settlement.services import SettlementService, is_timeout_error


def make_client(email="client@example.com", balance="500.00", **extra):
    user = CustomUser.objects.create_user(
        email=email, password="pass", first_name="Ana", last_name="Client",
        user_type=CustomUser.CLIENT, **extra,
    )
    ClientProfile.objects.create(user=user, company_name="Acme Media", balance=Decimal(balance))
    return user


def make_freelancer(email="freelancer@example.com", balance="0.00"):
    user = CustomUser.objects.create_user(
        email=email, password="pass", first_name="Lea", last_name="Voice",
        user_type=CustomUser.FREELANCER,
    )
    FreelancerProfile.objects.create(user=user, title="EN-FR translator", balance=Decimal(balance))
    return user


def make_project(client, freelancer, budget="100.00", status=Project.COMPLETED, title="Subtitle translation"):
    return Project.objects.create(
        client=client,
        freelancer=freelancer,
        title=title,
        description="Translate 20 minutes of subtitles",
        service_type="translation",
        budget=Decimal(budget),
        status=status,
    )


class FakePgError(Exception):
    def __init__(self, pgcode):
        super().__init__(pgcode)
        self.pgcode = pgcode


def db_error(pgcode=None):
    exc = DatabaseError("database failure")
    if pgcode:
        exc.__cause__ = FakePgError(pgcode)
    return exc


class FeeCalculatorTests(TestCase):
    def test_two_percent_of_one_hundred(self):
        fee, payout = split_amount(Decimal("100"), Decimal("0.02"))
        self.assertEqual(fee, Decimal("2.00"))
        self.assertEqual(payout, Decimal("98.00"))

    def test_fee_and_payout_always_sum_to_amount(self):
        for rate in ("0", "0.02", "0.15", "0.5", "0.9999"):
            for raw in ("0.01", "0.25", "1.99", "33.33", "250.50", "999.99", "12345.67"):
                amount = Decimal(raw)
                fee, payout = split_amount(amount, Decimal(rate))
                self.assertEqual(fee + payout, amount)
                self.assertGreaterEqual(fee, 0)
                self.assertGreaterEqual(payout, 0)
                self.assertEqual(fee, fee.quantize(Decimal("0.01")))

    def test_zero_rate_pays_everything_out(self):
        self.assertEqual(split_amount(Decimal("100.00"), Decimal("0")), (Decimal("0.00"), Decimal("100.00")))

    def test_rate_close_to_one(self):
        fee, payout = split_amount(Decimal("100.00"), Decimal("0.9999"))
        self.assertEqual(fee, Decimal("99.99"))
        self.assertEqual(payout, Decimal("0.01"))

    def test_strict_conversion_refuses_sub_cent_amounts(self):
        self.assertEqual(to_money(Decimal("100.000"), strict=True), Decimal("100.00"))
        with self.assertRaises(ValueError):
            to_money(Decimal("100.005"), strict=True)
        self.assertEqual(to_money(Decimal("100.005")), Decimal("100.01"))

    def test_fee_rounds_half_up_to_the_cent(self):
        # 0.25 * 0.02 = 0.005
        fee, payout = split_amount(Decimal("0.25"), Decimal("0.02"))
        self.assertEqual(fee, Decimal("0.01"))
        self.assertEqual(payout, Decimal("0.24"))

    def test_float_input_is_converted_without_drift(self):
        self.assertEqual(to_money(0.1 + 0.2), Decimal("0.30"))

    def test_rejects_non_positive_or_non_finite_amounts(self):
        for bad in (Decimal("0"), Decimal("-5"), "NaN", "Infinity", "abc"):
            with self.assertRaises(ValueError):
                split_amount(bad, Decimal("0.02"))

    def test_rejects_rates_outside_unit_interval(self):
        for rate in (Decimal("-0.01"), Decimal("1"), Decimal("1.5")):
            with self.assertRaises(ValueError):
                split_amount(Decimal("100"), rate)

    def test_fee_percentage(self):
        self.assertEqual(fee_percentage(Decimal("0.02")), Decimal("2.00"))

    @override_settings(PLATFORM_FEE_RATE=Decimal("0.05"))
    def test_rate_comes_from_settings(self):
        self.assertEqual(get_platform_fee_rate(), Decimal("0.05"))
        self.assertEqual(split_amount(Decimal("100")), (Decimal("5.00"), Decimal("95.00")))

    @override_settings(PLATFORM_FEE_RATE=Decimal("1.5"))
    def test_invalid_configured_rate(self):
        with self.assertRaises(ImproperlyConfigured):
            get_platform_fee_rate()

    def test_rate_read_from_environment_string(self):
        with override_settings(PLATFORM_FEE_RATE="0.03"):
            self.assertEqual(get_platform_fee_rate(), Decimal("0.03"))

    def test_non_numeric_configured_rate(self):
        with override_settings(PLATFORM_FEE_RATE="two percent"):
            with self.assertRaises(ImproperlyConfigured):
                get_platform_fee_rate()


@override_settings(PLATFORM_FEE_RATE=Decimal("0.02"))
class SettlementServiceTests(TestCase):
    def setUp(self):
        self.client_user = make_client()
        self.freelancer_user = make_freelancer()
        self.project = make_project(self.client_user, self.freelancer_user)
        self.service = SettlementService()

    def settle(self, amount="100.00", **overrides):
        params = {
            "project_id": self.project.id,
            "client_id": self.client_user.id,
            "freelancer_id": self.freelancer_user.id,
            "amount": Decimal(amount),
        }
        params.update(overrides)
        return self.service.settle(**params)

    def assert_untouched(self, client_balance="500.00", freelancer_balance="0.00", project_status=Project.COMPLETED):
        self.project.refresh_from_db()
        self.assertEqual(self.project.status, project_status)
        self.assertEqual(ClientProfile.objects.get(pk=self.client_user.id).balance, Decimal(client_balance))
        self.assertEqual(FreelancerProfile.objects.get(pk=self.freelancer_user.id).balance, Decimal(freelancer_balance))

    def test_settle_moves_funds_and_records_fee(self):
        result = self.settle()

        self.assertEqual(result["fee_percentage"], Decimal("2.00"))
        self.assertEqual(result["platform_fee"], Decimal("2.00"))
        self.assertEqual(result["amount_to_freelancer"], Decimal("98.00"))
        self.assertEqual(result["client_balance"], Decimal("400.00"))
        self.assertEqual(result["freelancer_balance"], Decimal("98.00"))

        self.assert_untouched(client_balance="400.00", freelancer_balance="98.00", project_status=Project.PAID)
        self.assertIsNotNone(self.project.paid_at)

        revenue = PlatformRevenue.objects.get()
        self.assertEqual(revenue.project_id, self.project.id)
        self.assertEqual(revenue.amount, Decimal("2.00"))
        self.assertEqual(revenue.percentage, Decimal("0.0200"))

        payment = Payment.objects.get(project=self.project)
        self.assertEqual(payment.amount, Decimal("100.00"))
        self.assertEqual(payment.platform_fee + payment.amount_to_freelancer, payment.amount)

    def test_balance_conservation(self):
        before = ClientProfile.objects.get(pk=self.client_user.id).balance + FreelancerProfile.objects.get(pk=self.freelancer_user.id).balance
        result = self.settle(amount="77.77")
        after = result["client_balance"] + result["freelancer_balance"]
        self.assertEqual(before - after, result["platform_fee"])

    def test_second_settlement_is_rejected(self):
        self.settle()

        with self.assertRaises(AlreadySettled):
            self.settle()

        self.assert_untouched(client_balance="400.00", freelancer_balance="98.00", project_status=Project.PAID)
        self.assertEqual(PlatformRevenue.objects.count(), 1)
        self.assertEqual(Payment.objects.count(), 1)

    def test_already_settled_takes_precedence_over_insufficient_funds(self):
        self.settle()
        ClientProfile.objects.filter(pk=self.client_user.id).update(balance=Decimal("0.00"))

        with self.assertRaises(AlreadySettled):
            self.settle()

    def test_insufficient_funds_changes_nothing(self):
        ClientProfile.objects.filter(pk=self.client_user.id).update(balance=Decimal("200.00"))

        with self.assertRaises(InsufficientFunds) as ctx:
            self.settle(amount="250.50")

        self.assertEqual(ctx.exception.http_status, 402)
        self.assert_untouched(client_balance="200.00")
        self.assertFalse(PlatformRevenue.objects.exists())
        self.assertFalse(Payment.objects.exists())

    def test_exact_balance_can_be_spent(self):
        ClientProfile.objects.filter(pk=self.client_user.id).update(balance=Decimal("100.00"))
        result = self.settle()
        self.assertEqual(result["client_balance"], Decimal("0.00"))

    def test_unknown_project(self):
        with self.assertRaises(ProjectNotFound):
            self.settle(project_id=999999)

    def test_unknown_client(self):
        # the freelancer has no client account
        with self.assertRaises(ClientNotFound):
            self.settle(client_id=self.freelancer_user.id)
        self.assert_untouched()

    def test_unknown_freelancer(self):
        with self.assertRaises(FreelancerNotFound):
            self.settle(freelancer_id=self.client_user.id)
        self.assert_untouched()

    def test_participants_must_match_project(self):
        other_client = make_client(email="other@example.com")

        with self.assertRaises(SettlementValidationError):
            self.settle(client_id=other_client.id)

        self.assert_untouched()
        self.assertEqual(ClientProfile.objects.get(pk=other_client.id).balance, Decimal("500.00"))

    def test_only_completed_projects_can_be_settled(self):
        Project.objects.filter(pk=self.project.pk).update(status=Project.IN_PROGRESS)

        with self.assertRaises(InvalidProjectState):
            self.settle()

        self.assert_untouched(project_status=Project.IN_PROGRESS)

    def test_invalid_input_is_rejected_before_any_write(self):
        for amount in ("0", "-5"):
            with self.assertRaises(SettlementValidationError):
                self.settle(amount=amount)
        with self.assertRaises(SettlementValidationError):
            self.settle(project_id=None)
        with self.assertRaises(SettlementValidationError):
            self.settle(client_id="abc")

        self.assert_untouched()

    def test_sub_cent_amount_is_rejected_not_rounded(self):
        with self.assertRaises(SettlementValidationError):
            self.settle(amount="100.005")

        self.assert_untouched()
        self.assertFalse(PlatformRevenue.objects.exists())
        self.assertFalse(Payment.objects.exists())

    def test_trailing_zero_precision_is_accepted(self):
        result = self.settle(amount="100.000")
        self.assertEqual(result["client_balance"], Decimal("400.00"))

    def test_failure_while_debiting_rolls_everything_back(self):
        with mock.patch.object(SettlementService, "_debit_client", side_effect=db_error()):
            with self.assertRaises(PartialFailure) as ctx:
                self.settle()

        self.assertEqual(ctx.exception.step, "debit_client")
        self.assertEqual(ctx.exception.as_dict()["error_kind"], "PartialFailure")
        self.assert_untouched()
        self.assertIsNone(self.project.paid_at)
        self.assertFalse(PlatformRevenue.objects.exists())
        self.assertFalse(Payment.objects.exists())

    def test_failure_while_crediting_restores_client_balance(self):
        with mock.patch.object(SettlementService, "_credit_freelancer", side_effect=db_error()):
            with self.assertRaises(PartialFailure) as ctx:
                self.settle()

        self.assertEqual(ctx.exception.step, "credit_freelancer")
        self.assert_untouched()
        self.assertFalse(Payment.objects.exists())

    def test_statement_timeout_is_reported_as_timeout(self):
        with mock.patch.object(SettlementService, "_mark_paid", side_effect=db_error(pgcode="57014")):
            with self.assertRaises(SettlementTimeout) as ctx:
                self.settle()

        self.assertEqual(ctx.exception.error_kind, "Timeout")
        self.assertEqual(ctx.exception.http_status, 504)
        self.assertEqual(ctx.exception.step, "mark_paid")
        self.assert_untouched()

    def test_timeout_detection(self):
        self.assertTrue(is_timeout_error(db_error(pgcode="57014")))
        self.assertTrue(is_timeout_error(db_error(pgcode="55P03")))
        self.assertFalse(is_timeout_error(db_error(pgcode="23505")))
        self.assertFalse(is_timeout_error(db_error()))

    def test_conditional_debit_never_overdraws(self):
        # Simulates a concurrent settlement that spent the funds after they were checked.
        ClientProfile.objects.filter(pk=self.client_user.id).update(balance=Decimal("50.00"))

        with mock.patch.object(SettlementService, "_ensure_sufficient_funds"):
            with self.assertRaises(InsufficientFunds):
                self.settle()

        self.assert_untouched(client_balance="50.00")
        self.assertFalse(Payment.objects.exists())

    def test_two_settlements_exceeding_balance(self):
        ClientProfile.objects.filter(pk=self.client_user.id).update(balance=Decimal("150.00"))
        second = make_project(self.client_user, self.freelancer_user, title="Dubbing")

        self.settle()
        with self.assertRaises(InsufficientFunds):
            self.settle(project_id=second.id)

        self.assertEqual(ClientProfile.objects.get(pk=self.client_user.id).balance, Decimal("50.00"))
        self.assertEqual(FreelancerProfile.objects.get(pk=self.freelancer_user.id).balance, Decimal("98.00"))
        second.refresh_from_db()
        self.assertEqual(second.status, Project.COMPLETED)

    def test_explicit_fee_rate(self):
        result = SettlementService(fee_rate=Decimal("0.10")).settle(
            project_id=self.project.id,
            client_id=self.client_user.id,
            freelancer_id=self.freelancer_user.id,
            amount=Decimal("100.00"),
        )
        self.assertEqual(result["fee_percentage"], Decimal("10.00"))
        self.assertEqual(result["platform_fee"], Decimal("10.00"))
        self.assertEqual(result["freelancer_balance"], Decimal("90.00"))

    def test_zero_fee_rate_credits_full_amount(self):
        result = SettlementService(fee_rate=Decimal("0")).settle(
            project_id=self.project.id,
            client_id=self.client_user.id,
            freelancer_id=self.freelancer_user.id,
            amount=Decimal("100.00"),
        )
        self.assertEqual(result["platform_fee"], Decimal("0.00"))
        self.assertEqual(result["amount_to_freelancer"], Decimal("100.00"))
        self.assertEqual(result["client_balance"], Decimal("400.00"))
        self.assertEqual(result["freelancer_balance"], Decimal("100.00"))

        revenue = PlatformRevenue.objects.get()
        self.assertEqual(revenue.amount, Decimal("0.00"))
        self.assertEqual(revenue.percentage, Decimal("0"))


@override_settings(PLATFORM_FEE_RATE=Decimal("0.02"))
class PaymentAPITests(APITestCase):
    def setUp(self):
        self.client_user = make_client()
        self.freelancer_user = make_freelancer()
        self.project = make_project(self.client_user, self.freelancer_user)
        self.url = reverse("payment-list-create")

    def payload(self, **overrides):
        data = {
            "project_id": self.project.id,
            "client_id": self.client_user.id,
            "freelancer_id": self.freelancer_user.id,
            "amount": "100.00",
        }
        data.update(overrides)
        return data

    def test_requires_authentication(self):
        response = self.client.post(self.url, self.payload(), format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_client_settles_project(self):
        self.client.force_authenticate(user=self.client_user)
        response = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(body["fee_percentage"], 2.0)
        self.assertEqual(body["platform_fee"], 2.0)
        self.assertEqual(body["amount_to_freelancer"], 98.0)
        self.assertEqual(body["client_balance"], 400.0)
        self.assertEqual(body["freelancer_balance"], 98.0)

    def test_missing_fields(self):
        self.client.force_authenticate(user=self.client_user)
        response = self.client.post(self.url, {"project_id": self.project.id}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error_kind"], "ValidationError")
        self.assertIn("amount", response.data["errors"])

    def test_non_positive_amount(self):
        self.client.force_authenticate(user=self.client_user)
        response = self.client.post(self.url, self.payload(amount="0"), format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_the_paying_client_may_settle(self):
        self.client.force_authenticate(user=self.freelancer_user)
        response = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(ClientProfile.objects.get(pk=self.client_user.id).balance, Decimal("500.00"))

    def test_insufficient_funds(self):
        ClientProfile.objects.filter(pk=self.client_user.id).update(balance=Decimal("200.00"))
        self.client.force_authenticate(user=self.client_user)
        response = self.client.post(self.url, self.payload(amount="250.50"), format="json")

        self.assertEqual(response.status_code, status.HTTP_402_PAYMENT_REQUIRED)
        self.assertEqual(response.data["error_kind"], "InsufficientFunds")

    def test_double_settlement_conflict(self):
        self.client.force_authenticate(user=self.client_user)
        self.client.post(self.url, self.payload(), format="json")
        response = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error_kind"], "AlreadySettled")

    def test_unknown_project(self):
        self.client.force_authenticate(user=self.client_user)
        response = self.client.post(self.url, self.payload(project_id=999999), format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error_kind"], "ProjectNotFound")

    def test_partial_failure_reports_step(self):
        self.client.force_authenticate(user=self.client_user)
        with mock.patch.object(SettlementService, "_credit_freelancer", side_effect=db_error()):
            response = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data["error_kind"], "PartialFailure")
        self.assertEqual(response.data["step"], "credit_freelancer")
        self.assertEqual(ClientProfile.objects.get(pk=self.client_user.id).balance, Decimal("500.00"))

    def test_timeout_status(self):
        self.client.force_authenticate(user=self.client_user)
        with mock.patch.object(SettlementService, "_lock_participants", side_effect=db_error(pgcode="55P03")):
            response = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_504_GATEWAY_TIMEOUT)
        self.assertEqual(response.data["error_kind"], "Timeout")
        self.assertEqual(response.data["step"], "load")

    def test_list_payments_per_participant(self):
        self.client.force_authenticate(user=self.client_user)
        self.client.post(self.url, self.payload(), format="json")

        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["project"], self.project.id)

        self.client.force_authenticate(user=self.freelancer_user)
        self.assertEqual(self.client.get(self.url).data["count"], 1)

        outsider = make_freelancer(email="outsider@example.com")
        self.client.force_authenticate(user=outsider)
        self.assertEqual(self.client.get(self.url).data["count"], 0)


@override_settings(PLATFORM_FEE_RATE=Decimal("0.02"))
class AdminStatisticsAPITests(APITestCase):
    def setUp(self):
        self.admin = CustomUser.objects.create_user(
            email="admin@example.com", password="pass", first_name="Site", last_name="Admin", is_staff=True,
        )
        self.client_user = make_client()
        self.freelancer_user = make_freelancer()
        self.project = make_project(self.client_user, self.freelancer_user)
        SettlementService().settle(
            project_id=self.project.id,
            client_id=self.client_user.id,
            freelancer_id=self.freelancer_user.id,
            amount=Decimal("100.00"),
        )

    def test_stats_require_staff(self):
        self.client.force_authenticate(user=self.client_user)
        response = self.client.get(reverse("admin-stats"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_stats(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse("admin-stats"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total_revenue"], Decimal("2.00"))
        self.assertEqual(response.data["transactions_count"], 1)
        self.assertEqual(response.data["projects_by_status"], {Project.PAID: 1})
        self.assertEqual(response.data["freelancers"][0]["balance"], Decimal("98.00"))
        self.assertEqual(response.data["clients"][0]["balance"], Decimal("400.00"))
        self.assertEqual(len(response.data["recent_transactions"]), 1)
        self.assertEqual(sum(response.data["revenue_by_month"].values()), Decimal("2.00"))

    def test_transactions_with_statistics(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse("admin-transactions"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data["transactions"]), 1)
        statistics = response.data["statistics"]
        self.assertEqual(statistics["total_transactions"], 1)
        self.assertEqual(statistics["completed_transactions"], 1)
        self.assertEqual(statistics["total_amount"], Decimal("100.00"))
        self.assertEqual(statistics["total_fees"], Decimal("2.00"))

    def test_transactions_date_window(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse("admin-transactions"), {"end": "2000-01-01"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["transactions"], [])
        self.assertEqual(response.data["statistics"]["total_amount"], Decimal("0.00"))

    def test_malformed_date_is_a_bad_request(self):
        self.client.force_authenticate(user=self.admin)

        for params in ({"start": "not-a-date"}, {"end": "2024-02-30"}, {"start": "2024-05-02", "end": "2024-05-01"}):
            response = self.client.get(reverse("admin-transactions"), params)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
