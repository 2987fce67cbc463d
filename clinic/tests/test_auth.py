import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from clinic.authentication import issue_tokens
from clinic.models import AuditEvent, Role, User

from .conftest import make_staff

pytestmark = pytest.mark.django_db


def login(client, email, password='P@ssw0rd1'):
    return client.post(reverse('login_view'), {'email': email, 'password': password}, format='json')


def bearer(token):
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
    return client


@pytest.mark.parametrize('role,redirect', [
    (Role.ADMIN, '/'),
    (Role.DOCTOR, '/doctor'),
    (Role.RECEPTIONIST, '/receptionist'),
])
def test_login_returns_tokens_role_and_redirect(role, redirect):
    make_staff(f'{role}@test.local', role)
    r = login(APIClient(), f'{role}@test.local')
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert r.data['access'] and r.data['refresh']
    assert r.data['role'] == role
    assert r.data['redirectUrl'] == redirect
    assert r.data['user']['email'] == f'{role}@test.local'


def test_login_is_case_insensitive_on_email(doctor):
    assert login(APIClient(), 'DOC@Test.Local').status_code == 200


def test_bad_credentials_get_401_envelope(doctor):
    r = login(APIClient(), 'doc@test.local', 'wrong-password')
    assert r.status_code == 401
    assert r.data == {'ok': False, 'error': {'code': 'invalid_credentials', 'message': 'invalid email or password'}}
    assert AuditEvent.objects.filter(action='login', detail__result='fail').exists()


def test_login_ignores_a_role_sent_by_the_client(receptionist):
    r = APIClient().post(reverse('login_view'),
                         {'email': 'desk@test.local', 'password': 'P@ssw0rd1', 'role': 'admin'}, format='json')
    assert r.status_code == 200
    assert r.data['role'] == Role.RECEPTIONIST


def test_bearer_token_authenticates_me(doctor):
    access = login(APIClient(), 'doc@test.local').data['access']
    r = bearer(access).get(reverse('me_view'))
    assert r.status_code == 200
    assert r.data['user']['id'] == doctor.id
    assert r.data['user']['role'] == Role.DOCTOR


def test_missing_or_garbage_token_is_401():
    assert APIClient().get(reverse('me_view')).status_code == 401
    assert bearer('not-a-jwt').get(reverse('me_view')).status_code == 401


def test_token_with_stale_role_is_rejected(receptionist):
    access = str(issue_tokens(receptionist).access_token)
    User.objects.filter(pk=receptionist.pk).update(role=Role.DOCTOR)
    r = bearer(access).get(reverse('me_view'))
    assert r.status_code == 401


def test_inactive_user_token_is_rejected(receptionist):
    access = str(issue_tokens(receptionist).access_token)
    User.objects.filter(pk=receptionist.pk).update(is_active=False)
    assert bearer(access).get(reverse('me_view')).status_code == 401


def test_register_is_admin_only(admin_client, desk_client):
    payload = {'name': 'Nina Nurse', 'email': 'nina@test.local', 'password': 'S3cure-pass', 'role': 'doctor',
               'specialization': 'Neurology'}
    assert desk_client.post(reverse('register_view'), payload, format='json').status_code == 403

    r = admin_client.post(reverse('register_view'), payload, format='json')
    assert r.status_code == 201
    user = User.objects.get(email='nina@test.local')
    assert user.role == Role.DOCTOR
    assert user.staff_id.startswith('DOC-')
    assert user.first_name == 'Nina' and user.last_name == 'Nurse'
    assert r.data['user']['staffId'] == user.staff_id


def test_register_duplicate_email_is_conflict(admin_client, doctor):
    r = admin_client.post(reverse('register_view'), {
        'name': 'Dup', 'email': 'DOC@test.local', 'password': 'S3cure-pass',
    }, format='json')
    assert r.status_code == 409
    assert r.data['error']['code'] == 'conflict'


def test_register_rejects_unknown_role(admin_client):
    r = admin_client.post(reverse('register_view'), {
        'name': 'X', 'email': 'x@test.local', 'password': 'S3cure-pass', 'role': 'superuser',
    }, format='json')
    assert r.status_code == 400
    assert 'role' in r.data['error']['message']


def test_refresh_then_logout_blacklists(doctor):
    tokens = login(APIClient(), 'doc@test.local').data
    r = APIClient().post(reverse('refresh_view'), {'refresh': tokens['refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['access']

    client = bearer(tokens['access'])
    r = client.post(reverse('logout_view'), {'refresh': tokens['refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] == 1

    r = APIClient().post(reverse('refresh_view'), {'refresh': tokens['refresh']}, format='json')
    assert r.status_code == 401


def test_logout_without_token_blacklists_every_session(doctor):
    first = login(APIClient(), 'doc@test.local').data
    login(APIClient(), 'doc@test.local')
    r = bearer(first['access']).post(reverse('logout_view'), {}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] == 2


def test_logout_refuses_someone_elses_token(doctor, receptionist):
    theirs = str(issue_tokens(receptionist))
    mine = str(issue_tokens(doctor).access_token)
    r = bearer(mine).post(reverse('logout_view'), {'refresh': theirs}, format='json')
    assert r.status_code == 400
