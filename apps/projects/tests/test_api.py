"""
Integration tests for project API endpoints.
"""
import json
from uuid import uuid4

from django.test import TestCase, Client

from apps.identity.jwt_auth import create_access_token
from apps.identity.models import User


class ProjectAPITest(TestCase):

    def setUp(self):
        self.client = Client()
        self.auth = {'HTTP_AUTHORIZATION': f"Bearer {create_access_token('user-sub', roles=['USER'])}"}
        self.responsible = User.objects.create(
            external_id=str(uuid4()), email='resp@x.com', first_name='Jean', last_name='Dupont',
        )

    def create_project(self, **overrides):
        data = {
            'name': 'Apollo',
            'start_date': '2024-01-01',
            'end_date': '2024-12-31',
            'responsible_id': str(self.responsible.id),
        }
        data.update(overrides)
        return self.client.post('/api/projects', data=json.dumps(data), content_type='application/json', **self.auth)

    def test_requires_auth(self):
        response = self.client.get('/api/projects')
        self.assertEqual(response.status_code, 401)

    def test_create_and_get(self):
        response = self.create_project()
        self.assertEqual(response.status_code, 201)
        project_id = response.json()['id']

        response = self.client.get(f'/api/projects/{project_id}', **self.auth)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['responsible']['email'], 'resp@x.com')

    def test_invalid_dates(self):
        response = self.create_project(end_date='2023-01-01')

        self.assertEqual(response.status_code, 400)
        self.assertIn('end_date', response.json()['validation_errors'])

    def test_unknown_project(self):
        response = self.client.get(f'/api/projects/{uuid4()}', **self.auth)
        self.assertEqual(response.status_code, 404)

    def test_list_by_responsible(self):
        self.create_project()

        response = self.client.get(f'/api/projects/responsible/{self.responsible.id}', **self.auth)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 1)

    def test_update_and_delete(self):
        project_id = self.create_project().json()['id']

        response = self.client.put(
            f'/api/projects/{project_id}',
            data=json.dumps({'name': 'Artemis'}),
            content_type='application/json',
            **self.auth,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['name'], 'Artemis')

        response = self.client.delete(f'/api/projects/{project_id}', **self.auth)
        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.client.get('/api/projects', **self.auth).json(), [])
