import pytest

from clinpath_app_pkg import create_app, db
from clinpath_app_pkg.utils import create_access_token
from clinpath_app_pkg.encounters.services import create_encounter

ALL_PERMISSIONS = [
    'pathway:create', 'pathway:read', 'pathway:update', 'pathway:delete',
    'compliance:read', 'compliance:update',
    'summary:generate', 'summary:read',
    'dashboard:read',
]


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    """Build bearer headers the way the identity service would mint them."""
    def _headers(permissions=None, user_id='nurse-01'):
        token = create_access_token(user_id, ALL_PERMISSIONS if permissions is None else permissions)
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def make_encounter(app):
    def _make(**overrides):
        data = {
            'patient_name': 'Siti Aminah',
            'record_number': 'RM-0001',
            'pathway_type': 'Pneumonia',
            'admission_date': '2024-03-05',
            'admission_time': '08:00',
            'dpjp': 'dr. Budi, Sp.P',
            'verifier': 'Ns. Rina',
        }
        data.update(overrides)
        return create_encounter(data)
    return _make
