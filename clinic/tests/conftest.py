import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from clinic.models import Patient, Role, User, Ward, Bed


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttling counters live in the cache
    cache.clear()
    yield
    cache.clear()


def make_staff(email, role, password='P@ssw0rd1', **extra):
    return User.objects.create_user(username=email, email=email, password=password, role=role, **extra)


@pytest.fixture
def admin_user(db):
    return make_staff('admin@test.local', Role.ADMIN, first_name='Ada')


@pytest.fixture
def doctor(db):
    return make_staff('doc@test.local', Role.DOCTOR, first_name='Dan', specialization='Cardiology')


@pytest.fixture
def receptionist(db):
    return make_staff('desk@test.local', Role.RECEPTIONIST, first_name='Rita')


@pytest.fixture
def patient(db):
    return Patient.objects.create(name='John Smith', age=40, gender='male', contact='555-0100')


@pytest.fixture
def ward(db):
    return Ward.objects.create(name='General A', type='general', capacity=2)


@pytest.fixture
def bed(ward):
    return Bed.objects.create(bed_number='GA-1', ward=ward)


def client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def admin_client(admin_user):
    return client_for(admin_user)


@pytest.fixture
def doctor_client(doctor):
    return client_for(doctor)


@pytest.fixture
def desk_client(receptionist):
    return client_for(receptionist)
