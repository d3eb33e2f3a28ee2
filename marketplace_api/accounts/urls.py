from rest_framework_simplejwt.views import TokenRefreshView
from django.urls import path


from . import views as my_views


urlpatterns = [
    path('account/token/', my_views.CustomTokenObtainPairView.as_view(), name='token-obtain-pair'),
    path('account/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('account/register/', my_views.RegistrationAPIView.as_view(), name='register'),
    path('account/users/me/', my_views.UserProfileRetrieveUpdateAPIView.as_view(), name='profile-retrieve-update'),
    path('account/users/change-password/', my_views.ChangePasswordAPIView.as_view(), name='change-password'),
    path('account/token/blacklist/', my_views.LogoutAPIView.as_view(), name='logout'),
    path('account/admin/users/', my_views.UserListAPIView.as_view(), name='list-user'),
    path('account/users/me/deactivate/', my_views.UserDeleteAPIView.as_view(), name='deactivate-account'),

    path('clients/', my_views.ClientListAPIView.as_view(), name='client-list'),
    path('clients/<int:id>/', my_views.ClientRetrieveUpdateAPIView.as_view(), name='client-detail'),
    path('clients/<int:id>/balance/', my_views.ClientBalanceAPIView.as_view(), name='client-balance'),
    path('freelancers/', my_views.FreelancerListAPIView.as_view(), name='freelancer-list'),
    path('freelancers/<int:id>/', my_views.FreelancerRetrieveUpdateAPIView.as_view(), name='freelancer-detail'),
]
