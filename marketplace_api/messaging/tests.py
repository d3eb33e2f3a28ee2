from decimal import Decimal

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import CustomUser
from projects.models import Project
from messaging.models import ProjectMessage


class ProjectMessageTests(APITestCase):
    def setUp(self):
        self.client_user = CustomUser.objects.create_user(
            email="client@example.com", password="pass", first_name="Ana", last_name="Client", user_type=CustomUser.CLIENT,
        )
        self.freelancer = CustomUser.objects.create_user(
            email="freelancer@example.com", password="pass", first_name="Lea", last_name="Voice", user_type=CustomUser.FREELANCER,
        )
        self.outsider = CustomUser.objects.create_user(
            email="outsider@example.com", password="pass", user_type=CustomUser.FREELANCER,
        )
        self.project = Project.objects.create(
            client=self.client_user,
            freelancer=self.freelancer,
            title="Podcast transcript",
            description="Transcribe and translate",
            budget=Decimal("80.00"),
        )
        self.url = reverse("project-messages", kwargs={"project_id": self.project.id})

    def test_participant_sends_message(self):
        self.client.force_authenticate(user=self.client_user)
        response = self.client.post(self.url, {"content": "  Deadline is Friday.  "}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        message = ProjectMessage.objects.get()
        self.assertEqual(message.content, "Deadline is Friday.")
        self.assertEqual(message.sender, self.client_user)
        self.assertEqual(message.project, self.project)

    def test_empty_message_rejected(self):
        self.client.force_authenticate(user=self.freelancer)
        response = self.client.post(self.url, {"content": "   "}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(ProjectMessage.objects.exists())

    def test_outsider_cannot_read_or_write(self):
        self.client.force_authenticate(user=self.outsider)

        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.post(self.url, {"content": "hi"}, format="json").status_code, status.HTTP_403_FORBIDDEN)

    def test_history_is_oldest_first_and_marks_own_messages(self):
        ProjectMessage.objects.create(project=self.project, sender=self.client_user, content="first")
        ProjectMessage.objects.create(project=self.project, sender=self.freelancer, content="second")

        self.client.force_authenticate(user=self.freelancer)
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([m["content"] for m in response.data], ["first", "second"])
        self.assertEqual([m["is_current_user"] for m in response.data], [False, True])

    def test_mark_read_only_touches_other_party_messages(self):
        ProjectMessage.objects.create(project=self.project, sender=self.client_user, content="from client")
        own = ProjectMessage.objects.create(project=self.project, sender=self.freelancer, content="from freelancer")

        self.client.force_authenticate(user=self.freelancer)
        response = self.client.post(reverse("project-messages-read", kwargs={"project_id": self.project.id}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["updated"], 1)
        own.refresh_from_db()
        self.assertFalse(own.is_read)
        self.assertTrue(ProjectMessage.objects.get(content="from client").is_read)

    def test_unknown_project(self):
        self.client.force_authenticate(user=self.client_user)
        response = self.client.get(reverse("project-messages", kwargs={"project_id": 999999}))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
