import re

import pytest
import requests

from coffee_pos.models import Invoice
from coffee_pos.services.xendit_client import (
    XenditClient,
    format_amount,
    format_display_amount,
    generate_external_id,
)


class FakeResponse:
    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self._data = data

    def json(self):
        if self._data is None:
            raise ValueError('no json')
        return self._data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} Error', response=self)


class FakeSession:
    """Sustituye a requests.Session registrando cada llamada."""

    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []
        self.headers = {}
        self.auth = None

    def _respond(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.exc:
            raise self.exc
        return self.response

    def post(self, url, **kwargs):
        return self._respond('POST', url, **kwargs)

    def get(self, url, **kwargs):
        return self._respond('GET', url, **kwargs)


INVOICE_JSON = {
    'id': '65f1a2b3c4',
    'external_id': 'coffeerealmpos_1_2_abcdef',
    'status': 'PENDING',
    'amount': 665.28,
    'invoice_url': 'https://checkout-staging.xendit.co/web/65f1a2b3c4',
    'expiry_date': '2024-03-16T10:00:00.000Z',
    'currency': 'PHP',
    'description': 'Coffee Realm POS - 1 item(s)',
}


def _client(session):
    return XenditClient(secret_key='xnd_development_key', base_url='https://api.xendit.co/', session=session)


def test_pure_helpers():
    assert format_amount(11.88) == 665.28
    assert format_amount(0) == 0
    assert format_display_amount(1234.5) == '₱1,234.50'
    external_id = generate_external_id('42')
    assert re.fullmatch(r'coffeerealmpos_42_\d+_[a-z0-9]{6}', external_id)
    assert generate_external_id('42') != external_id


def test_basic_auth_with_secret_key():
    session = FakeSession()
    _client(session)
    assert session.auth == ('xnd_development_key', '')


def test_create_invoice_payload_and_result():
    session = FakeSession(FakeResponse(200, INVOICE_JSON))
    result = _client(session).create_invoice(
        external_id='coffeerealmpos_1_2_abcdef',
        amount=665.28,
        description='Coffee Realm POS - 1 item(s)',
        success_url='http://pos.local/pos?payment=success',
        failure_url='http://pos.local/pos?payment=failed',
        customer_name='Ana',
    )
    assert result['ok'] is True
    assert isinstance(result['data'], Invoice)
    assert result['data'].invoice_url.endswith('65f1a2b3c4')

    method, url, kwargs = session.calls[0]
    assert (method, url) == ('POST', 'https://api.xendit.co/v2/invoices')
    payload = kwargs['json']
    assert payload['currency'] == 'PHP'
    assert payload['invoice_duration'] == 86400
    assert payload['customer_name'] == 'Ana'
    assert payload['success_redirect_url'].endswith('payment=success')
    # Opcionales vacíos no se envían
    assert 'payer_email' not in payload
    assert 'customer_phone' not in payload


@pytest.mark.parametrize('status, body, expected', [
    (401, {'message': 'x'}, 'Invalid API key. Please verify your Xendit credentials.'),
    (403, {}, 'API key does not have permission to create invoices. Please check your Xendit dashboard settings.'),
    (400, {'message': 'amount must be positive'}, 'Bad request: amount must be positive'),
    (400, None, 'Bad request: Invalid request parameters'),
    (500, {'message': 'Upstream down'}, 'Upstream down'),
])
def test_create_invoice_error_mapping(status, body, expected):
    session = FakeSession(FakeResponse(status, body))
    result = _client(session).create_invoice(external_id='e', amount=1, description='d')
    assert result == {'ok': False, 'error': expected}


def test_payment_method_mismatch_message():
    body = {'message': 'The payment method choices did not match with the available one'}
    result = _client(FakeSession(FakeResponse(400, body))).create_invoice(
        external_id='e', amount=1, description='d'
    )
    assert 'Payment Channels' in result['error']


def test_network_error_is_caught():
    session = FakeSession(exc=requests.ConnectionError('connection refused'))
    result = _client(session).create_invoice(external_id='e', amount=1, description='d')
    assert result == {'ok': False, 'error': 'connection refused'}


def test_get_invoice():
    data = dict(INVOICE_JSON, status='PAID')
    session = FakeSession(FakeResponse(200, data))
    result = _client(session).get_invoice('65f1a2b3c4')
    assert result['ok'] and result['data'].is_paid
    assert session.calls[0][:2] == ('GET', 'https://api.xendit.co/v2/invoices/65f1a2b3c4')


def test_get_invoice_error_uses_provider_message():
    session = FakeSession(FakeResponse(404, {'message': 'Invoice not found'}))
    assert _client(session).get_invoice('nope') == {'ok': False, 'error': 'Invoice not found'}


def test_demo_invoice_answered_locally():
    session = FakeSession()
    result = _client(session).get_invoice('demo_invoice_123')
    assert result['ok'] is True
    assert result['data'].status == 'PAID'
    assert session.calls == []
