from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth import get_user_model

User = get_user_model()

class Command(BaseCommand):
    help = "Creates a platform administrator, or promotes an existing user to staff."

    def add_arguments(self, parser):
        parser.add_argument('--email', type=str, required=True, help='Email of the administrator')
        parser.add_argument('--password', type=str, help='Password for a newly created administrator')
        parser.add_argument('--first-name', type=str, default='Platform')
        parser.add_argument('--last-name', type=str, default='Admin')

    def handle(self, *args, **options):
        email = options['email']
        user = User.objects.filter(email=email).first()

        if user:
            user.is_staff = True
            user.save(update_fields=['is_staff'])
            self.stdout.write(self.style.SUCCESS(f"User {email} promoted to platform administrator."))
            return

        password = options.get('password')
        if not password:
            raise CommandError("--password is required when creating a new administrator.")

        User.objects.create_user(
            email=email,
            password=password,
            first_name=options['first_name'],
            last_name=options['last_name'],
            is_staff=True,
        )
        self.stdout.write(self.style.SUCCESS(f"Created platform administrator {email}."))
