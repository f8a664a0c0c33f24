from django.core.management.base import BaseCommand, CommandError
from deliverydesk.core.models import User
from deliverydesk.core.permissions import ROLE_ADMIN, default_permissions_for_role


class Command(BaseCommand):
    help = 'Create an ADMIN account, or promote an existing account with the same email to ADMIN'

    def add_arguments(self, parser):
        parser.add_argument('--email', required=True, help='Login email of the admin account')
        parser.add_argument('--password', help='Password (required when the account does not exist yet)')
        parser.add_argument('--name', default='', help='Display name')

    def handle(self, *args, **options):
        email = options['email'].strip().lower()
        password = options.get('password')

        user = User.objects.filter(email__iexact=email).first()
        if user is None:
            if not password:
                raise CommandError('--password is required to create a new admin account')
            user = User.objects.create_user(
                username=email,
                email=email,
                password=password,
                name=options['name'],
            )
            created = True
        else:
            created = False
            if password:
                user.set_password(password)

        user.role = ROLE_ADMIN
        user.permissions = default_permissions_for_role(ROLE_ADMIN)
        user.is_active = True
        user.is_staff = True
        user.is_superuser = True
        if options['name']:
            user.name = options['name']
        user.save()

        if created:
            self.stdout.write(self.style.SUCCESS(f'Created admin account {email}'))
        else:
            self.stdout.write(self.style.SUCCESS(f'Promoted {email} to ADMIN'))
