from django.urls import path

from . import views as my_views

urlpatterns = [
    path('projects/', my_views.ListCreateProjectAPIView.as_view(), name='project-list-create'),
    path('projects/<int:id>/', my_views.RetrieveUpdateDeleteProjectAPIView.as_view(), name='project-detail'),

    # freelancer lifecycle actions
    path('projects/<int:id>/accept/', my_views.AcceptProjectFreelancerAPIView.as_view(), name='project-accept'),
    path('projects/<int:id>/reject/', my_views.RejectProjectFreelancerAPIView.as_view(), name='project-reject'),
    path('projects/<int:id>/complete/', my_views.CompleteProjectFreelancerAPIView.as_view(), name='project-complete'),
]
