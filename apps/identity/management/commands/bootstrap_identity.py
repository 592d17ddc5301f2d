from django.core.management.base import BaseCommand, CommandError

from apps.identity.bootstrap import initialize_realm_roles
from apps.identity.directory import get_directory_client


class Command(BaseCommand):
    help = 'Creates the ADMIN and USER realm roles in the identity provider'

    def add_arguments(self, parser):
        parser.add_argument(
            '--strict',
            action='store_true',
            help='Exit with an error when the identity provider cannot be used',
        )

    def handle(self, *args, **options):
        result = initialize_realm_roles(get_directory_client())

        if not result.ok:
            if options['strict']:
                raise CommandError(result.error)
            self.stdout.write(self.style.WARNING(f'Realm roles not initialized: {result.error}'))
            return

        for role in result.created:
            self.stdout.write(self.style.SUCCESS(f'Created role: {role}'))
        for role in result.existing:
            self.stdout.write(f'Role already exists: {role}')
