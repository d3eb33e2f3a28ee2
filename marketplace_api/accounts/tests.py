from decimal import Decimal
from io import StringIO

from django.core import mail
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import CustomUser, ClientProfile, FreelancerProfile
from accounts.services import add_client_funds, BalanceLimitExceeded


PASSWORD = "Vox-Popul1-2024"


def create_client(email="client@example.com", balance="0.00"):
    user = CustomUser.objects.create_user(
        email=email, password=PASSWORD, first_name="Ana", last_name="Client", user_type=CustomUser.CLIENT,
    )
    ClientProfile.objects.create(user=user, company_name="Acme Media", balance=Decimal(balance))
    return user


def create_freelancer(email="freelancer@example.com"):
    user = CustomUser.objects.create_user(
        email=email, password=PASSWORD, first_name="Lea", last_name="Voice", user_type=CustomUser.FREELANCER,
    )
    FreelancerProfile.objects.create(user=user, title="Voice actor", languages=["fr", "en"], services=["voice_over"])
    return user


class RegistrationTests(APITestCase):
    def setUp(self):
        self.url = reverse("register")

    def test_register_client_creates_profile_and_tokens(self):
        payload = {
            "email": "studio@example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "first_name": "Marta",
            "last_name": "Studio",
            "user_type": "client",
            "company_name": "Studio Nord",
        }
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)
        self.assertNotIn("password", response.data["user"])

        user = CustomUser.objects.get(email="studio@example.com")
        profile = ClientProfile.objects.get(pk=user.id)
        self.assertEqual(profile.balance, Decimal("0.00"))
        self.assertEqual(profile.company_name, "Studio Nord")
        self.assertEqual(profile.contact_name, "Marta Studio")
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["studio@example.com"])

    def test_register_freelancer(self):
        payload = {
            "email": "dub@example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "first_name": "Paul",
            "last_name": "Dub",
            "user_type": "freelancer",
            "title": "Dubbing artist",
            "hourly_rate": "35.00",
            "languages": ["de", "en"],
            "services": ["dubbing"],
        }
        response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        profile = FreelancerProfile.objects.get(user__email="dub@example.com")
        self.assertEqual(profile.languages, ["de", "en"])
        self.assertEqual(profile.hourly_rate, Decimal("35.00"))
        self.assertFalse(ClientProfile.objects.filter(user__email="dub@example.com").exists())

    def test_password_mismatch(self):
        payload = {
            "email": "x@example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD + "x",
            "first_name": "X",
            "last_name": "Y",
            "user_type": "client",
        }
        response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(CustomUser.objects.filter(email="x@example.com").exists())

    def test_duplicate_email(self):
        create_client(email="taken@example.com")
        payload = {
            "email": "taken@example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "first_name": "X",
            "last_name": "Y",
            "user_type": "client",
        }
        response = self.client.post(self.url, payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class LoginTests(APITestCase):
    def setUp(self):
        self.url = reverse("token-obtain-pair")
        self.user = create_client()

    def test_login_returns_tokens_and_role(self):
        response = self.client.post(self.url, {"email": self.user.email, "password": PASSWORD}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)
        self.assertEqual(response.data["user_id"], self.user.id)
        self.assertEqual(response.data["user_type"], "client")

    def test_wrong_password(self):
        response = self.client.post(self.url, {"email": self.user.email, "password": "nope"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_deactivated_account_cannot_log_in(self):
        self.user.deleted_at = timezone.now()
        self.user.is_active = False
        self.user.save()

        response = self.client.post(self.url, {"email": self.user.email, "password": PASSWORD}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_attempts_are_throttled_per_email(self):
        for _ in range(5):
            response = self.client.post(self.url, {"email": self.user.email, "password": "nope"}, format="json")
            self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        response = self.client.post(self.url, {"email": self.user.email.upper(), "password": PASSWORD}, format="json")
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)


class UserAccountTests(APITestCase):
    def setUp(self):
        self.user = create_freelancer()
        self.client.force_authenticate(user=self.user)

    def test_me(self):
        response = self.client.get(reverse("profile-retrieve-update"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["email"], self.user.email)
        self.assertEqual(response.data["user_type"], "freelancer")

    def test_user_type_is_read_only(self):
        response = self.client.patch(reverse("profile-retrieve-update"), {"user_type": "client", "first_name": "Lena"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.user_type, "freelancer")
        self.assertEqual(self.user.first_name, "Lena")

    def test_change_password(self):
        payload = {"old_password": PASSWORD, "new_password": "An0ther-Secret!", "confirm_password": "An0ther-Secret!"}
        response = self.client.post(reverse("change-password"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("An0ther-Secret!"))

    def test_deactivate_account(self):
        response = self.client.patch(reverse("deactivate-account"), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertFalse(self.user.is_active)
        self.assertIsNotNone(self.user.deleted_at)

    def test_user_list_is_admin_only(self):
        response = self.client.get(reverse("list-user"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ClientBalanceTests(APITestCase):
    def setUp(self):
        self.client_user = create_client(balance="10.00")
        self.url = reverse("client-balance", kwargs={"id": self.client_user.id})

    def test_client_reads_own_balance(self):
        self.client.force_authenticate(user=self.client_user)
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["balance"], "10.00")

    def test_add_funds(self):
        self.client.force_authenticate(user=self.client_user)
        response = self.client.post(self.url, {"amount": "100.50"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["balance"], "110.50")
        self.assertEqual(ClientProfile.objects.get(pk=self.client_user.id).balance, Decimal("110.50"))

    def test_add_funds_rejects_non_positive_amounts(self):
        self.client.force_authenticate(user=self.client_user)
        for amount in ("0", "-10", "abc"):
            response = self.client.post(self.url, {"amount": amount}, format="json")
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.assertEqual(ClientProfile.objects.get(pk=self.client_user.id).balance, Decimal("10.00"))

    def test_other_users_cannot_fund_or_read(self):
        other = create_client(email="other@example.com")
        self.client.force_authenticate(user=other)

        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.post(self.url, {"amount": "5"}, format="json").status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_funding_unknown_client(self):
        admin = CustomUser.objects.create_user(email="admin@example.com", password=PASSWORD, is_staff=True)
        self.client.force_authenticate(user=admin)
        response = self.client.post(reverse("client-balance", kwargs={"id": 999999}), {"amount": "5"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["detail"], "Client not found.")

    def test_funding_beyond_balance_capacity(self):
        ClientProfile.objects.filter(pk=self.client_user.id).update(balance=Decimal("9999999999.00"))
        self.client.force_authenticate(user=self.client_user)
        response = self.client.post(self.url, {"amount": "1.00"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(ClientProfile.objects.get(pk=self.client_user.id).balance, Decimal("9999999999.00"))


class AddClientFundsServiceTests(TestCase):
    def test_increments_balance(self):
        user = create_client(balance="1.00")
        self.assertEqual(add_client_funds(user.id, Decimal("2.50")), Decimal("3.50"))

    def test_unknown_client(self):
        with self.assertRaises(ClientProfile.DoesNotExist):
            add_client_funds(999999, Decimal("1.00"))

    def test_balance_capacity(self):
        user = create_client(balance="9999999999.00")

        self.assertEqual(add_client_funds(user.id, Decimal("0.99")), Decimal("9999999999.99"))
        with self.assertRaises(BalanceLimitExceeded):
            add_client_funds(user.id, Decimal("0.01"))
        self.assertEqual(ClientProfile.objects.get(pk=user.id).balance, Decimal("9999999999.99"))


class ProfileTests(APITestCase):
    def setUp(self):
        self.client_user = create_client()
        self.freelancer = create_freelancer()

    def test_freelancer_list_search(self):
        create_freelancer(email="translator@example.com")
        FreelancerProfile.objects.filter(user__email="translator@example.com").update(title="Legal translator")
        self.client.force_authenticate(user=self.client_user)

        response = self.client.get(reverse("freelancer-list"), {"search": "legal"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["title"], "Legal translator")

    def test_freelancer_detail_includes_projects(self):
        self.client.force_authenticate(user=self.client_user)
        response = self.client.get(reverse("freelancer-detail", kwargs={"id": self.freelancer.id}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["freelancer"]["id"], self.freelancer.id)
        self.assertEqual(response.data["projects"], [])

    def test_only_owner_updates_profile(self):
        url = reverse("freelancer-detail", kwargs={"id": self.freelancer.id})

        self.client.force_authenticate(user=self.client_user)
        self.assertEqual(self.client.patch(url, {"title": "Hacked"}, format="json").status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.freelancer)
        response = self.client.patch(url, {"title": "Senior voice actor", "balance": "1000.00"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        profile = FreelancerProfile.objects.get(pk=self.freelancer.id)
        self.assertEqual(profile.title, "Senior voice actor")
        self.assertEqual(profile.balance, Decimal("0.00"))

    def test_client_detail(self):
        self.client.force_authenticate(user=self.freelancer)
        response = self.client.get(reverse("client-detail", kwargs={"id": self.client_user.id}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["company_name"], "Acme Media")


class CreatePlatformAdminCommandTests(TestCase):
    def test_creates_staff_user(self):
        call_command("create_platform_admin", email="ops@example.com", password=PASSWORD, stdout=StringIO())

        user = CustomUser.objects.get(email="ops@example.com")
        self.assertTrue(user.is_staff)
        self.assertTrue(user.check_password(PASSWORD))

    def test_promotes_existing_user(self):
        user = create_client()
        call_command("create_platform_admin", email=user.email, stdout=StringIO())

        user.refresh_from_db()
        self.assertTrue(user.is_staff)

    def test_new_admin_requires_password(self):
        with self.assertRaises(CommandError):
            call_command("create_platform_admin", email="nopass@example.com", stdout=StringIO())
