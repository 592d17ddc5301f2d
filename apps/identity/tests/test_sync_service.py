"""
Tests for the user synchronization service.
Covers create/update/delete/role flows against an in-memory identity provider,
including degraded mode and abort paths.
"""
from datetime import date
from unittest.mock import patch

from django.db import IntegrityError
from django.test import TestCase

from apps.core.exceptions import (
    AuthorityError,
    AuthorityForbidden,
    AuthorityNotFound,
    AuthorityUnreachable,
    BlobStorageError,
    ConflictError,
    DuplicateEmail,
    NotFoundError,
    SynchronizationFailed,
    UserNotFound,
    ValidationError,
)
from apps.identity.dtos import UserCreate
from apps.identity.models import Role, RoleMembership, User
from apps.identity.sync_service import UserSyncService
from apps.projects.models import Project
from apps.tasks.models import Task

from .fakes import FakeBlobStorage, FakeDirectory


def make_payload(**overrides):
    data = {
        'email': 'a@x.com',
        'first_name': 'Jean',
        'last_name': 'Dupont',
        'password': 'secret123',
    }
    data.update(overrides)
    return UserCreate(**data)


class SyncServiceTestCase(TestCase):

    def setUp(self):
        self.directory = FakeDirectory()
        self.blobs = FakeBlobStorage()
        self.service = UserSyncService(self.directory, self.blobs)


class CreateUserTest(SyncServiceTestCase):

    def test_create_user_with_reachable_provider(self):
        user = self.service.create_user(make_payload())

        self.assertEqual(user.email, 'a@x.com')
        self.assertEqual(user.roles, ['USER'])
        self.assertFalse(user.degraded)
        self.assertIn(user.external_id, self.directory.accounts)
        self.assertEqual(self.directory.roles[user.external_id], {'USER'})
        self.assertEqual(self.directory.passwords[user.external_id], 'secret123')

    def test_create_user_with_requested_roles(self):
        user = self.service.create_user(make_payload(roles=['ADMIN', 'USER']))

        self.assertEqual(user.roles, ['ADMIN', 'USER'])
        self.assertEqual(self.directory.roles[user.external_id], {'ADMIN', 'USER'})

    def test_create_user_keeps_optional_fields(self):
        user = self.service.create_user(make_payload(birth_date=date(1990, 5, 17), phone='0601020304'))

        self.assertEqual(user.birth_date, date(1990, 5, 17))
        self.assertEqual(user.phone, '0601020304')

    def test_duplicate_email_has_no_side_effects(self):
        self.service.create_user(make_payload())
        self.directory.calls.clear()
        accounts_before = dict(self.directory.accounts)

        with self.assertRaises(DuplicateEmail):
            self.service.create_user(make_payload(first_name='Other'))

        self.assertFalse(self.directory.called('create_account'))
        self.assertEqual(self.directory.accounts, accounts_before)
        self.assertEqual(User.objects.count(), 1)

    def test_duplicate_email_is_case_insensitive(self):
        self.service.create_user(make_payload())

        with self.assertRaises(DuplicateEmail):
            self.service.create_user(make_payload(email='A@X.com'))

    def test_unreachable_provider_creates_degraded_user(self):
        self.directory.fail('create_account', AuthorityUnreachable("connection refused"))

        with self.assertLogs('apps.identity.sync_service', level='WARNING'):
            user = self.service.create_user(make_payload())

        self.assertTrue(user.external_id.startswith('local-'))
        self.assertTrue(user.degraded)
        self.assertEqual(user.roles, ['USER'])
        self.assertEqual(self.directory.accounts, {})
        self.assertFalse(self.directory.called('assign_role'))

    def test_forbidden_provider_creates_degraded_user(self):
        self.directory.fail('create_account', AuthorityForbidden("missing manage-users", status=403))

        user = self.service.create_user(make_payload())

        self.assertTrue(user.degraded)
        self.assertTrue(User.objects.filter(email='a@x.com').exists())

    def test_placeholder_ids_are_unique(self):
        self.directory.fail('create_account', AuthorityUnreachable("down"))

        first = self.service.create_user(make_payload(email='one@x.com'))
        second = self.service.create_user(make_payload(email='two@x.com'))

        self.assertNotEqual(first.external_id, second.external_id)

    def test_other_provider_failure_raises_synchronization_failed(self):
        self.directory.fail('create_account', AuthorityError("conflict", status=409))

        with self.assertRaises(SynchronizationFailed):
            self.service.create_user(make_payload())

        self.assertFalse(User.objects.exists())

    def test_role_assignment_failure_does_not_block_creation(self):
        self.directory.fail('assign_role', AuthorityForbidden("no role mapping rights", status=403))

        with self.assertLogs('apps.identity.sync_service', level='WARNING'):
            user = self.service.create_user(make_payload())

        self.assertFalse(user.degraded)
        self.assertEqual(user.roles, ['USER'])

    def test_invalid_profile_is_rejected_before_provider_call(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.create_user(make_payload(email='not-an-email', first_name='  '))

        self.assertIn('email', ctx.exception.errors)
        self.assertIn('first_name', ctx.exception.errors)
        self.assertFalse(self.directory.called('create_account'))

    def test_missing_password_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.create_user(make_payload(password=''))

        self.assertIn('password', ctx.exception.errors)


class UpdateUserTest(SyncServiceTestCase):

    def setUp(self):
        super().setUp()
        self.user = self.service.create_user(make_payload())

    def test_update_changes_provider_and_local(self):
        updated = self.service.update_user(self.user.id, {'first_name': 'Paul', 'phone': '0700000000'})

        self.assertEqual(updated.first_name, 'Paul')
        self.assertEqual(updated.phone, '0700000000')
        self.assertEqual(self.directory.accounts[self.user.external_id].first_name, 'Paul')

    def test_unset_fields_keep_their_value(self):
        updated = self.service.update_user(self.user.id, {'last_name': 'Martin', 'email': None})

        self.assertEqual(updated.email, 'a@x.com')
        self.assertEqual(updated.first_name, 'Jean')
        self.assertEqual(updated.last_name, 'Martin')

    def test_missing_user_raises_user_not_found(self):
        other = User(external_id='x', email='z@x.com', first_name='Z', last_name='Z')

        with self.assertRaises(UserNotFound):
            self.service.update_user(other.id, {'first_name': 'Paul'})

    def test_email_taken_by_another_user(self):
        self.service.create_user(make_payload(email='b@x.com'))

        with self.assertRaises(DuplicateEmail):
            self.service.update_user(self.user.id, {'email': 'b@x.com'})

        self.assertFalse(self.directory.called('update_account'))

    def test_keeping_own_email_is_not_a_duplicate(self):
        updated = self.service.update_user(self.user.id, {'email': 'a@x.com', 'first_name': 'Paul'})

        self.assertEqual(updated.first_name, 'Paul')

    def test_provider_rejection_aborts_without_local_change(self):
        self.directory.fail('update_account', AuthorityNotFound("gone", status=404))

        with self.assertRaises(SynchronizationFailed):
            self.service.update_user(self.user.id, {'first_name': 'Paul'})

        self.assertEqual(User.objects.get(id=self.user.id).first_name, 'Jean')

    def test_unreachable_provider_still_updates_locally(self):
        self.directory.fail('update_account', AuthorityUnreachable("timeout"))

        with self.assertLogs('apps.identity.sync_service', level='WARNING'):
            updated = self.service.update_user(self.user.id, {'first_name': 'Paul'})

        self.assertEqual(updated.first_name, 'Paul')
        self.assertEqual(self.directory.accounts[self.user.external_id].first_name, 'Jean')


class DeleteUserTest(SyncServiceTestCase):

    def setUp(self):
        super().setUp()
        self.user = self.service.create_user(make_payload())

    def test_delete_removes_provider_account_and_local_user(self):
        self.service.delete_user(self.user.id)

        self.assertNotIn(self.user.external_id, self.directory.accounts)
        self.assertFalse(User.objects.filter(id=self.user.id).exists())
        self.assertFalse(RoleMembership.objects.filter(user_id=self.user.id).exists())

    def test_missing_user_raises_user_not_found(self):
        self.service.delete_user(self.user.id)

        with self.assertRaises(UserNotFound):
            self.service.delete_user(self.user.id)

    def test_unreachable_provider_aborts_delete(self):
        self.directory.fail('delete_account', AuthorityUnreachable("down"))

        with self.assertRaises(AuthorityUnreachable):
            self.service.delete_user(self.user.id)

        self.assertTrue(User.objects.filter(id=self.user.id).exists())

    def test_forbidden_provider_aborts_delete(self):
        self.directory.fail('delete_account', AuthorityForbidden("denied", status=403))

        with self.assertRaises(AuthorityForbidden):
            self.service.delete_user(self.user.id)

        self.assertTrue(User.objects.filter(id=self.user.id).exists())

    def test_unknown_provider_account_aborts_delete(self):
        self.directory.fail('delete_account', AuthorityNotFound("gone", status=404))

        with self.assertRaises(SynchronizationFailed):
            self.service.delete_user(self.user.id)

        self.assertTrue(User.objects.filter(id=self.user.id).exists())

    def test_responsible_user_cannot_be_deleted(self):
        Project.objects.create(name='Apollo', start_date=date(2024, 1, 1), responsible_id=self.user.id)

        with self.assertRaises(ConflictError):
            self.service.delete_user(self.user.id)

        self.assertFalse(self.directory.called('delete_account'))
        self.assertIn(self.user.external_id, self.directory.accounts)

    def test_assigned_tasks_lose_their_assignee(self):
        owner = self.service.create_user(make_payload(email='owner@x.com'))
        project = Project.objects.create(name='Apollo', start_date=date(2024, 1, 1), responsible_id=owner.id)
        task = Task.objects.create(title='Launch', project=project, assignee_id=self.user.id)

        self.service.delete_user(self.user.id)

        task.refresh_from_db()
        self.assertIsNone(task.assignee_id)

    def test_identity_document_is_removed(self):
        self.service.upload_identity_document(self.user.id, b'%PDF-1.4', 'id.pdf', 'application/pdf')

        self.service.delete_user(self.user.id)

        self.assertEqual(self.blobs.objects, {})

    def test_document_cleanup_failure_is_only_logged(self):
        self.service.upload_identity_document(self.user.id, b'%PDF-1.4', 'id.pdf', 'application/pdf')
        self.blobs.failures['delete'] = BlobStorageError("storage down")

        with self.assertLogs('apps.identity.sync_service', level='WARNING'):
            self.service.delete_user(self.user.id)

        self.assertFalse(User.objects.filter(id=self.user.id).exists())


class RoleManagementTest(SyncServiceTestCase):

    def setUp(self):
        super().setUp()
        self.user = self.service.create_user(make_payload())

    def test_assign_role(self):
        updated = self.service.assign_role(self.user.id, 'ADMIN')

        self.assertEqual(updated.roles, ['ADMIN', 'USER'])
        self.assertEqual(self.directory.roles[self.user.external_id], {'ADMIN', 'USER'})

    def test_role_name_is_case_insensitive(self):
        updated = self.service.assign_role(self.user.id, 'admin')

        self.assertIn('ADMIN', updated.roles)

    def test_assigning_held_role_is_harmless(self):
        updated = self.service.assign_role(self.user.id, Role.USER)

        self.assertEqual(updated.roles, ['USER'])

    def test_unknown_role_is_rejected(self):
        self.directory.calls.clear()

        with self.assertRaises(ValidationError):
            self.service.assign_role(self.user.id, 'SUPERVISOR')

        self.assertFalse(self.directory.called('assign_role'))

    def test_provider_failure_aborts_assignment(self):
        self.directory.fail('assign_role', AuthorityUnreachable("down"))

        with self.assertRaises(AuthorityUnreachable):
            self.service.assign_role(self.user.id, 'ADMIN')

        self.assertEqual(User.objects.get(id=self.user.id).role_names, {'USER'})

    def test_provider_rejection_aborts_removal(self):
        self.directory.fail('remove_role', AuthorityError("bad request", status=400))

        with self.assertRaises(SynchronizationFailed):
            self.service.remove_role(self.user.id, 'USER')

        self.assertEqual(User.objects.get(id=self.user.id).role_names, {'USER'})

    def test_remove_role(self):
        self.service.assign_role(self.user.id, 'ADMIN')

        updated = self.service.remove_role(self.user.id, 'ADMIN')

        self.assertEqual(updated.roles, ['USER'])
        self.assertEqual(self.directory.roles[self.user.external_id], {'USER'})

    def test_removing_last_role_is_not_blocked(self):
        updated = self.service.remove_role(self.user.id, 'USER')

        self.assertEqual(updated.roles, [])
        self.assertEqual(self.directory.roles[self.user.external_id], set())


class DirectorySyncTest(SyncServiceTestCase):

    def test_sync_creates_missing_local_user(self):
        external_id = self.directory.add_account('c@x.com', 'Claire', 'Durand', roles={'ADMIN'})

        user = self.service.sync_user_from_directory(external_id)

        self.assertEqual(user.external_id, external_id)
        self.assertEqual(user.email, 'c@x.com')
        self.assertEqual(user.roles, ['ADMIN'])

    def test_sync_defaults_to_user_role(self):
        external_id = self.directory.add_account('c@x.com')

        user = self.service.sync_user_from_directory(external_id)

        # provider default roles are not mirrored
        self.assertEqual(user.roles, ['USER'])

    def test_sync_overwrites_profile_and_roles(self):
        created = self.service.create_user(make_payload())
        account = self.directory.accounts[created.external_id]
        account.last_name = 'Martin'
        self.directory.roles[created.external_id] = {'ADMIN'}

        user = self.service.sync_user_from_directory(created.external_id)

        self.assertEqual(user.id, created.id)
        self.assertEqual(user.last_name, 'Martin')
        self.assertEqual(user.roles, ['ADMIN'])

    def test_sync_is_idempotent(self):
        external_id = self.directory.add_account('c@x.com', roles={'USER'})
        first = self.service.sync_user_from_directory(external_id)
        memberships = list(RoleMembership.objects.values_list('id', flat=True))

        second = self.service.sync_user_from_directory(external_id)

        self.assertEqual(first, second)
        self.assertEqual(User.objects.count(), 1)
        self.assertEqual(list(RoleMembership.objects.values_list('id', flat=True)), memberships)

    def test_sync_unknown_account_raises_user_not_found(self):
        with self.assertRaises(UserNotFound):
            self.service.sync_user_from_directory('does-not-exist')

    def test_sync_unreachable_provider_propagates(self):
        external_id = self.directory.add_account('c@x.com')
        self.directory.fail('get_account', AuthorityUnreachable("down"))

        with self.assertRaises(AuthorityUnreachable):
            self.service.sync_user_from_directory(external_id)

        self.assertFalse(User.objects.exists())

    def test_sync_email_owned_by_other_user(self):
        self.service.create_user(make_payload(email='c@x.com'))
        external_id = self.directory.add_account('c@x.com')

        with self.assertRaises(DuplicateEmail):
            self.service.sync_user_from_directory(external_id)

    def test_sync_account_without_email_is_rejected(self):
        first = self.directory.add_account('')
        second = self.directory.add_account('')

        for external_id in (first, second):
            with self.assertRaises(ValidationError) as ctx:
                self.service.sync_user_from_directory(external_id)
            self.assertIn('email', ctx.exception.errors)

        self.assertFalse(User.objects.exists())

    def test_sync_concurrent_insert_is_reported_as_duplicate(self):
        external_id = self.directory.add_account('c@x.com')

        with patch.object(User.objects, 'create', side_effect=IntegrityError("users_email_key")):
            with self.assertLogs('apps.identity.sync_service', level='ERROR'):
                with self.assertRaises(DuplicateEmail):
                    self.service.sync_user_from_directory(external_id)


class AdminUserTest(SyncServiceTestCase):

    def test_create_admin_user(self):
        admin = self.service.create_admin_user('admin@x.com', 'changeit', 'Admin', 'System')

        self.assertEqual(admin.roles, ['ADMIN'])
        self.assertEqual(self.directory.roles[admin.external_id], {'ADMIN'})

    def test_existing_provider_account_is_reused(self):
        external_id = self.directory.add_account('admin@x.com', 'Admin', 'System')

        admin = self.service.create_admin_user('admin@x.com', 'changeit', 'Admin', 'System')

        self.assertEqual(admin.external_id, external_id)
        self.assertFalse(self.directory.called('create_account'))

    def test_existing_local_user_is_promoted(self):
        user = self.service.create_user(make_payload(email='admin@x.com'))

        admin = self.service.create_admin_user('admin@x.com', 'changeit', 'Jean', 'Dupont')

        self.assertEqual(admin.id, user.id)
        self.assertEqual(admin.roles, ['ADMIN', 'USER'])

    def test_degraded_local_user_is_linked_to_provider_account(self):
        self.directory.fail('create_account', AuthorityUnreachable("down"))
        with self.assertLogs('apps.identity.sync_service', level='WARNING'):
            degraded = self.service.create_user(make_payload(email='admin@x.com'))
        self.directory.failures.clear()

        admin = self.service.create_admin_user('admin@x.com', 'changeit', 'Jean', 'Dupont')

        self.assertEqual(admin.id, degraded.id)
        self.assertFalse(admin.degraded)
        self.assertIn(admin.external_id, self.directory.accounts)
        self.assertEqual(User.objects.get(id=degraded.id).external_id, admin.external_id)


class IdentityDocumentTest(SyncServiceTestCase):

    def setUp(self):
        super().setUp()
        self.user = self.service.create_user(make_payload())

    def test_upload_and_download(self):
        updated = self.service.upload_identity_document(self.user.id, b'\x89PNG', 'id.png', 'image/png')

        self.assertTrue(updated.identity_document_url.startswith('http://blobs.test/identity-documents/'))
        self.assertEqual(self.service.download_identity_document(self.user.id), b'\x89PNG')

    def test_upload_replaces_previous_document(self):
        first = self.service.upload_identity_document(self.user.id, b'one', 'a.pdf', 'application/pdf')
        second = self.service.upload_identity_document(self.user.id, b'two', 'b.pdf', 'application/pdf')

        self.assertNotIn(first.identity_document_url, self.blobs.objects)
        self.assertEqual(list(self.blobs.objects), [second.identity_document_url])

    def test_failed_upload_leaves_no_document(self):
        self.service.upload_identity_document(self.user.id, b'one', 'a.pdf', 'application/pdf')
        self.blobs.failures['upload'] = BlobStorageError("storage down")

        with self.assertRaises(BlobStorageError):
            self.service.upload_identity_document(self.user.id, b'two', 'b.pdf', 'application/pdf')

        self.assertIsNone(User.objects.get(id=self.user.id).identity_document_url)

    def test_rejects_unsupported_type(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.upload_identity_document(self.user.id, b'GIF89a', 'id.gif', 'image/gif')

        self.assertIn('file', ctx.exception.errors)

    def test_rejects_oversized_file(self):
        with self.settings(IDENTITY_DOCUMENT_MAX_SIZE=4):
            with self.assertRaises(ValidationError):
                self.service.upload_identity_document(self.user.id, b'12345', 'id.png', 'image/png')

    def test_download_without_document(self):
        with self.assertRaises(NotFoundError):
            self.service.download_identity_document(self.user.id)


class ReadTest(SyncServiceTestCase):

    def test_get_user_by_external_id(self):
        created = self.service.create_user(make_payload())

        self.assertEqual(self.service.get_user_by_external_id(created.external_id).id, created.id)

    def test_get_missing_user(self):
        with self.assertRaises(UserNotFound):
            self.service.get_user_by_external_id('nobody')

    def test_list_users(self):
        self.service.create_user(make_payload(email='b@x.com', last_name='Bernard'))
        self.service.create_user(make_payload(email='a@x.com', last_name='Albert'))

        users = self.service.list_users()

        self.assertEqual([u.last_name for u in users], ['Albert', 'Bernard'])
