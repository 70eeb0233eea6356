"""Shared pytest fixtures."""
from datetime import datetime

import pytest

from homework_manager import create_app, db
from homework_manager.models import Assignment, RecurringAssignment, RecurrenceType, User, UserRole
from homework_manager.services.api_key_service import APIKeyService


@pytest.fixture
def app():
    """Create test app."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def _make_user(email, name, role=UserRole.USER, password='password123'):
    user = User(email=email, name=name, role=role)
    user.set_password(password)
    return user.save()


@pytest.fixture
def user(app):
    return _make_user('student@example.com', 'Student')


@pytest.fixture
def other_user(app):
    return _make_user('other@example.com', 'Other Student')


@pytest.fixture
def admin(app):
    return _make_user('admin@example.com', 'Admin', role=UserRole.ADMIN)


@pytest.fixture
def api_headers(user):
    plain_key, _ = APIKeyService.create_api_key(user.id, 'tests')
    return {'Authorization': f'Bearer {plain_key}'}


@pytest.fixture
def admin_headers(client, admin):
    response = client.post('/api/auth/login', json={
        'email': 'admin@example.com',
        'password': 'password123'
    })
    token = response.get_json()['data']['access_token']
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def make_assignment(user):
    """Factory for assignments owned by ``user`` unless told otherwise."""
    def factory(**overrides):
        fields = {
            'user_id': user.id,
            'title': 'Essay',
            'due_date': datetime(2024, 1, 10, 18, 0),
        }
        fields.update(overrides)
        return Assignment(**fields).save()
    return factory


@pytest.fixture
def make_rule(user):
    """Factory for bare recurring rules, without generating occurrences."""
    def factory(**overrides):
        fields = {
            'user_id': user.id,
            'title': 'Weekly worksheet',
            'recurrence_type': RecurrenceType.WEEKLY,
            'recurrence_interval': 1,
        }
        fields.update(overrides)
        return RecurringAssignment(**fields).save()
    return factory
