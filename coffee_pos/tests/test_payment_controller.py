import pytest

from conftest import make_invoice
from coffee_pos.models import CartItem, PaymentState
from coffee_pos.repositories.pending_order_repository import PendingOrderRepository
from coffee_pos.services.payment_controller import PaymentController
from coffee_pos.services.payment_service import PaymentService


LATTES = [CartItem(id='3', name='Latte', price=5.5, category='Coffee', quantity=2)]


@pytest.fixture
def pending_repo(tmp_path):
    return PendingOrderRepository(str(tmp_path))


@pytest.fixture
def controller(gateway, scheduler, pending_repo):
    return PaymentController(PaymentService(gateway), pending_repo, scheduler)


@pytest.fixture
def paid_ids():
    return []


@pytest.fixture
def opened(controller, paid_ids):
    controller.open(LATTES, 11.0, 0.88, 11.88, on_success=paid_ids.append)
    return controller


def test_blank_name_stays_idle_without_gateway_call(opened, gateway):
    result = opened.submit({'name': '   '}, 'http://pos.local')
    assert result['ok'] is False
    assert opened.state == PaymentState.IDLE
    assert opened.error == 'El nombre del cliente es obligatorio'
    assert gateway.create_calls == []


def test_submit_requires_open_dialog(controller, gateway):
    assert controller.submit({'name': 'Ana'})['ok'] is False
    assert gateway.create_calls == []


def test_invoice_request_uses_converted_total_and_return_urls(opened, gateway):
    opened.submit({'name': 'Ana', 'email': 'ana@example.com'}, 'http://pos.local/')
    call = gateway.create_calls[0]
    assert call['amount'] == 665.28
    assert call['customer_name'] == 'Ana'
    assert call['payer_email'] == 'ana@example.com'
    assert call['customer_phone'] is None
    assert call['success_url'] == 'http://pos.local/pos?payment=success'
    assert call['failure_url'] == 'http://pos.local/pos?payment=failed'
    assert call['description'] == 'Coffee Realm POS - 1 item(s)'


def test_full_success_lifecycle(opened, gateway, scheduler, paid_ids):
    gateway.statuses = ['PAID']
    assert opened.submit({'name': 'Ana'}, 'http://pos.local')['ok']
    assert opened.state == PaymentState.PROCESSING
    assert opened.get_status()['display_amount'] == '₱665.28'

    scheduler.advance(2)
    assert opened.state == PaymentState.READY

    scheduler.advance(1)
    assert opened.state == PaymentState.SUCCESS
    assert paid_ids == []

    scheduler.advance(2)
    assert paid_ids == ['inv_123']
    assert opened.is_open is False
    assert opened.state == PaymentState.IDLE
    assert opened.invoice is None
    assert opened.active_timers == 0
    assert scheduler.pending == 0


def test_paid_before_ready_goes_straight_to_success(gateway, scheduler, pending_repo):
    controller = PaymentController(PaymentService(gateway), pending_repo, scheduler,
                                   poll_interval=1, settle_delay=2)
    controller.open(LATTES, 11.0, 0.88, 11.88)
    gateway.statuses = ['SETTLED']
    controller.submit({'name': 'Ana'})
    scheduler.advance(1)
    assert controller.state == PaymentState.SUCCESS
    scheduler.advance(1)
    # El paso a ready no pisa un éxito ya registrado
    assert controller.state == PaymentState.SUCCESS


def test_expired_invoice_fails_and_stops_polling(opened, gateway, scheduler):
    gateway.statuses = ['PENDING', 'EXPIRED']
    opened.submit({'name': 'Ana'})
    scheduler.advance(6)
    assert opened.state == PaymentState.FAILED
    assert opened.error == 'Pago expirado'

    calls = len(gateway.status_calls)
    scheduler.advance(30)
    assert len(gateway.status_calls) == calls
    assert opened.active_timers == 0


def test_failed_poll_is_ignored(opened, gateway, scheduler):
    gateway.statuses = [None, None, 'PAID']
    opened.submit({'name': 'Ana'})
    scheduler.advance(6)
    assert opened.state == PaymentState.READY
    assert opened.error is None
    scheduler.advance(3)
    assert opened.state == PaymentState.SUCCESS


def test_gateway_error_is_surfaced(opened, gateway, scheduler):
    gateway.create_result = {'ok': False, 'error': 'Invalid API key. Please verify your Xendit credentials.'}
    result = opened.submit({'name': 'Ana'})
    assert result == {'ok': False, 'error': 'Invalid API key. Please verify your Xendit credentials.'}
    assert opened.state == PaymentState.FAILED
    assert opened.error == result['error']
    assert scheduler.pending == 0


def test_second_submit_rejected_while_in_flight(opened, gateway):
    opened.submit({'name': 'Ana'})
    assert opened.submit({'name': 'Ana'})['error'] == 'Ya hay un pago en curso'
    assert len(gateway.create_calls) == 1


def test_close_discards_everything(opened, gateway, scheduler, paid_ids):
    gateway.statuses = ['PAID']
    opened.submit({'name': 'Ana'})
    opened.close()

    assert opened.state == PaymentState.IDLE
    assert opened.invoice is None
    assert opened.customer == {'name': None, 'email': None, 'phone': None}
    assert opened.items == []
    assert opened.grand_total == 0.0
    scheduler.advance(30)
    assert gateway.status_calls == []
    assert paid_ids == []


def test_close_while_request_in_flight_discards_response(opened, gateway, scheduler):
    original = gateway.create_invoice

    def close_during_request(**kwargs):
        opened.close()
        return original(**kwargs)

    gateway.create_invoice = close_during_request
    result = opened.submit({'name': 'Ana'})
    assert result['ok'] is False
    assert opened.invoice is None
    assert scheduler.pending == 0


def test_reopen_resets_previous_attempt(opened, gateway, scheduler):
    opened.submit({'name': 'Ana'})
    opened.open(LATTES, 11.0, 0.88, 11.88)
    assert opened.state == PaymentState.IDLE
    assert opened.invoice is None
    scheduler.advance(10)
    assert gateway.status_calls == []


def test_try_again_keeps_customer(opened, gateway):
    gateway.create_result = {'ok': False, 'error': 'boom'}
    opened.submit({'name': 'Ana', 'phone': '0917'})
    assert opened.try_again() is True
    assert opened.state == PaymentState.IDLE
    assert opened.error is None
    assert opened.customer['name'] == 'Ana'
    assert opened.customer['phone'] == '0917'
    assert opened.try_again() is False


def test_proceed_to_checkout_saves_snapshot(opened, scheduler, pending_repo):
    assert opened.proceed_to_checkout()['ok'] is False

    opened.submit({'name': 'Ana', 'email': 'ana@example.com'})
    scheduler.advance(2)
    result = opened.proceed_to_checkout()
    assert result == {'ok': True, 'checkout_url': 'https://checkout-staging.xendit.co/web/inv_123'}

    pending = pending_repo.peek()
    assert pending.customer_name == 'Ana'
    assert pending.customer_email == 'ana@example.com'
    assert pending.grand_total == 11.88
    assert [(i.name, i.quantity) for i in pending.items] == [('Latte', 2)]


def test_proceed_to_checkout_stops_polling(opened, gateway, scheduler, paid_ids):
    opened.submit({'name': 'Ana'})
    scheduler.advance(2)
    opened.proceed_to_checkout()

    assert opened.is_open is False
    assert opened.items == []
    assert opened.active_timers == 0
    assert scheduler.pending == 0

    gateway.statuses = ['PAID']
    scheduler.advance(30)
    assert gateway.status_calls == []
    assert paid_ids == []


def test_copy_invoice_url(opened):
    assert opened.copy_invoice_url() is None
    opened.submit({'name': 'Ana'})
    assert opened.copy_invoice_url() == make_invoice().invoice_url


def test_context_manager_closes(gateway, scheduler, pending_repo):
    with PaymentController(PaymentService(gateway), pending_repo, scheduler) as controller:
        controller.open(LATTES, 11.0, 0.88, 11.88)
        controller.submit({'name': 'Ana'})
        assert controller.active_timers == 2
    assert controller.is_open is False
    assert controller.active_timers == 0
    assert scheduler.pending == 0
