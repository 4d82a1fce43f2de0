import os
import tempfile

# Logs de pruebas fuera del paquete; debe definirse antes de importar coffee_pos
os.environ.setdefault('POS_LOG_DIR', tempfile.mkdtemp(prefix='coffee_pos_logs_'))
os.environ.setdefault('POS_PROFILING', '0')

import pytest

from coffee_pos.app_container import AppContainer
from coffee_pos.models import Invoice
from coffee_pos.services import xendit_client
from coffee_pos.services.scheduler import ManualScheduler


def make_invoice(invoice_id='inv_123', status='PENDING', amount=665.28):
    return Invoice(
        id=invoice_id,
        external_id='coffeerealmpos_test',
        amount=amount,
        status=status,
        invoice_url=f'https://checkout-staging.xendit.co/web/{invoice_id}',
        currency='PHP',
    )


class FakeGateway:
    """Pasarela en memoria: registra llamadas y responde lo programado."""

    format_amount = staticmethod(xendit_client.format_amount)
    format_display_amount = staticmethod(xendit_client.format_display_amount)
    generate_external_id = staticmethod(xendit_client.generate_external_id)

    def __init__(self):
        self.create_calls = []
        self.status_calls = []
        self.create_result = {'ok': True, 'data': make_invoice()}
        self.statuses = []

    def create_invoice(self, **kwargs):
        self.create_calls.append(kwargs)
        return self.create_result

    def get_invoice(self, invoice_id):
        self.status_calls.append(invoice_id)
        if self.statuses:
            status = self.statuses.pop(0)
        else:
            status = 'PENDING'
        if status is None:
            return {'ok': False, 'error': 'timeout'}
        return {'ok': True, 'data': make_invoice(invoice_id, status)}


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def container(tmp_path, gateway, scheduler):
    AppContainer.reset_instance()
    c = AppContainer(str(tmp_path), gateway=gateway, scheduler=scheduler, seed=False)
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def seeded_container(tmp_path, gateway, scheduler):
    AppContainer.reset_instance()
    c = AppContainer(str(tmp_path), gateway=gateway, scheduler=scheduler, seed=True)
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def client(seeded_container):
    from coffee_pos.main import app
    app.config['TESTING'] = True
    with app.test_client() as c:
        yield c


def login(client, user='barista'):
    r = client.post('/session', json={'user': user})
    assert r.status_code == 200
    return r.get_json()['csrf_token']


@pytest.fixture
def token(client):
    """Inicia sesión y devuelve el token CSRF."""
    return login(client)
