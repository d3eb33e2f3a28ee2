from django.core.mail import send_mail
from django.conf import settings


def send_project_request_email(project):
    freelancer = project.freelancer
    subject = "You Have a New Project Request"
    message = f"""
    Hello {freelancer.get_full_name() or freelancer.email},

    {project.client.get_full_name() or project.client.email} would like to work with you on "{project.title}".

    Service: {project.get_service_type_display()}
    Budget: {project.budget}

    Accept or decline the request from your dashboard:
    {settings.FRONTEND_DOMAIN}/projects/{project.id}

    The {settings.SITE_NAME} Team
    """

    send_mail(
        subject=subject,
        message=message.strip(),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[freelancer.email],
        fail_silently=False,
    )
