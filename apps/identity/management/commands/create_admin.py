from django.core.management.base import BaseCommand, CommandError

from apps.core.exceptions import ServiceError
from apps.identity.sync_service import get_user_sync_service


class Command(BaseCommand):
    help = 'Creates an administrator in the identity provider and the local database'

    def add_arguments(self, parser):
        parser.add_argument('email')
        parser.add_argument('--password', required=True)
        parser.add_argument('--first-name', default='Admin')
        parser.add_argument('--last-name', default='System')

    def handle(self, *args, **options):
        try:
            user = get_user_sync_service().create_admin_user(
                options['email'],
                options['password'],
                options['first_name'],
                options['last_name'],
            )
        except ServiceError as e:
            raise CommandError(f'Could not create admin: {e.message}')

        self.stdout.write(self.style.SUCCESS(f'Admin ready: {user.email} (ID: {user.id})'))
