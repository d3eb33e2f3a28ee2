import logging
from decimal import Decimal

from django.core import mail
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import CustomUser, ClientProfile, FreelancerProfile
from projects.models import Project


def create_user(email, user_type, **extra):
    user = CustomUser.objects.create_user(
        email=email, password="pass", first_name=email.split("@")[0].title(), last_name="Test",
        user_type=user_type, **extra,
    )
    if user_type == CustomUser.CLIENT:
        ClientProfile.objects.create(user=user, balance=Decimal("500.00"))
    else:
        FreelancerProfile.objects.create(user=user)
    return user


class ProjectAPITestCase(APITestCase):
    def setUp(self):
        self.client_user = create_user("client@example.com", CustomUser.CLIENT)
        self.freelancer = create_user("freelancer@example.com", CustomUser.FREELANCER)
        self.other_freelancer = create_user("other@example.com", CustomUser.FREELANCER)
        self.project = Project.objects.create(
            client=self.client_user,
            freelancer=self.freelancer,
            title="Audiobook narration",
            description="Narrate chapter one in Spanish",
            service_type="voice_over",
            budget=Decimal("300.00"),
        )

    def transition(self, name, user, project=None):
        self.client.force_authenticate(user=user)
        return self.client.post(reverse(f"project-{name}", kwargs={"id": (project or self.project).id}))


class CreateProjectTests(ProjectAPITestCase):
    def test_client_creates_pending_project(self):
        self.client.force_authenticate(user=self.client_user)
        payload = {
            "title": "Dub trailer",
            "description": "German dub of a 2 minute trailer",
            "service_type": "dubbing",
            "budget": "150.00",
            "freelancer": self.freelancer.id,
        }
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(reverse("project-list-create"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["project"]["status"], Project.PENDING)
        project = Project.objects.get(id=response.data["project"]["id"])
        self.assertEqual(project.client, self.client_user)
        self.assertEqual(mail.outbox[0].to, [self.freelancer.email])

    def test_project_events_are_logged_at_info(self):
        self.assertTrue(logging.getLogger("projects.views").isEnabledFor(logging.INFO))

        self.client.force_authenticate(user=self.client_user)
        payload = {"title": "Voice-over", "description": "Ad spot", "budget": "90.00", "freelancer": self.freelancer.id}
        with self.assertLogs("projects.views", level="INFO") as logs:
            self.client.post(reverse("project-list-create"), payload, format="json")

        self.assertIn("created by client", logs.output[0])

    def test_freelancer_cannot_create(self):
        self.client.force_authenticate(user=self.freelancer)
        payload = {"title": "x", "description": "y", "budget": "10.00", "freelancer": self.other_freelancer.id}
        response = self.client.post(reverse("project-list-create"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_budget_must_be_positive(self):
        self.client.force_authenticate(user=self.client_user)
        payload = {"title": "x", "description": "y", "budget": "0", "freelancer": self.freelancer.id}
        response = self.client.post(reverse("project-list-create"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_assignee_must_be_a_freelancer(self):
        other_client = create_user("client2@example.com", CustomUser.CLIENT)
        self.client.force_authenticate(user=self.client_user)
        payload = {"title": "x", "description": "y", "budget": "10.00", "freelancer": other_client.id}
        response = self.client.post(reverse("project-list-create"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ListProjectTests(ProjectAPITestCase):
    def test_participants_only_see_their_projects(self):
        self.client.force_authenticate(user=self.freelancer)
        self.assertEqual(self.client.get(reverse("project-list-create")).data["count"], 1)

        self.client.force_authenticate(user=self.other_freelancer)
        self.assertEqual(self.client.get(reverse("project-list-create")).data["count"], 0)

    def test_staff_see_everything_and_filter_by_status(self):
        admin = CustomUser.objects.create_user(email="admin@example.com", password="pass", is_staff=True)
        self.client.force_authenticate(user=admin)

        self.assertEqual(self.client.get(reverse("project-list-create")).data["count"], 1)
        response = self.client.get(reverse("project-list-create"), {"status": Project.COMPLETED})
        self.assertEqual(response.data["count"], 0)

    def test_outsider_cannot_read_project(self):
        self.client.force_authenticate(user=self.other_freelancer)
        response = self.client.get(reverse("project-detail", kwargs={"id": self.project.id}))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class UpdateDeleteProjectTests(ProjectAPITestCase):
    def test_client_edits_pending_project(self):
        self.client.force_authenticate(user=self.client_user)
        response = self.client.patch(reverse("project-detail", kwargs={"id": self.project.id}), {"budget": "350.00"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.project.refresh_from_db()
        self.assertEqual(self.project.budget, Decimal("350.00"))

    def test_accepted_project_cannot_be_edited(self):
        Project.objects.filter(pk=self.project.pk).update(status=Project.IN_PROGRESS)
        self.client.force_authenticate(user=self.client_user)
        response = self.client.patch(reverse("project-detail", kwargs={"id": self.project.id}), {"budget": "1.00"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_freelancer_cannot_edit(self):
        self.client.force_authenticate(user=self.freelancer)
        response = self.client.patch(reverse("project-detail", kwargs={"id": self.project.id}), {"budget": "999.00"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_paid_project_cannot_be_deleted(self):
        Project.objects.filter(pk=self.project.pk).update(status=Project.PAID)
        self.client.force_authenticate(user=self.client_user)
        response = self.client.delete(reverse("project-detail", kwargs={"id": self.project.id}))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Project.objects.filter(pk=self.project.pk).exists())

    def test_pending_project_can_be_deleted(self):
        self.client.force_authenticate(user=self.client_user)
        response = self.client.delete(reverse("project-detail", kwargs={"id": self.project.id}))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Project.objects.filter(pk=self.project.pk).exists())


class ProjectLifecycleTests(ProjectAPITestCase):
    def test_accept_then_complete(self):
        response = self.transition("accept", self.freelancer)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["project"]["status"], Project.IN_PROGRESS)

        response = self.transition("complete", self.freelancer)
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.project.refresh_from_db()
        self.assertEqual(self.project.status, Project.COMPLETED)
        self.assertIsNotNone(self.project.completed_at)
        self.assertEqual(FreelancerProfile.objects.get(pk=self.freelancer.id).completed_projects, 1)

    def test_reject(self):
        response = self.transition("reject", self.freelancer)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.project.refresh_from_db()
        self.assertEqual(self.project.status, Project.REJECTED)

    def test_cannot_complete_pending_project(self):
        response = self.transition("complete", self.freelancer)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.project.refresh_from_db()
        self.assertEqual(self.project.status, Project.PENDING)

    def test_cannot_accept_twice(self):
        self.transition("accept", self.freelancer)
        response = self.transition("accept", self.freelancer)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_assigned_freelancer(self):
        response = self.transition("accept", self.other_freelancer)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_client_cannot_drive_freelancer_actions(self):
        response = self.transition("complete", self.client_user)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_paid_project_cannot_be_reopened(self):
        Project.objects.filter(pk=self.project.pk).update(status=Project.PAID)
        for name in ("accept", "reject", "complete"):
            response = self.transition(name, self.freelancer)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.project.refresh_from_db()
        self.assertEqual(self.project.status, Project.PAID)
