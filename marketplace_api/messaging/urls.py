from django.urls import path

from . import views

urlpatterns = [
    path('projects/<int:project_id>/messages/', views.ProjectMessageListCreateAPIView.as_view(), name='project-messages'),
    path('projects/<int:project_id>/messages/read/', views.MarkProjectMessagesReadAPIView.as_view(), name='project-messages-read'),
]
