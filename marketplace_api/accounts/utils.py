from django.core.mail import send_mail
from django.conf import settings


def send_welcome_email(user):
    subject = f"Welcome to {settings.SITE_NAME}"
    if user.user_type == 'freelancer':
        next_step = "Complete your profile with the languages and services you offer so clients can find you."
    else:
        next_step = "Add funds to your balance and start a project with one of our translators."

    message = f"""
    Hello {user.get_full_name() or user.email},

    Your {user.user_type} account has been created.

    {next_step}

    {settings.FRONTEND_DOMAIN}

    Thanks,
    The {settings.SITE_NAME} Team
    """

    send_mail(
        subject=subject,
        message=message.strip(),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[user.email],
        fail_silently=False,
    )
