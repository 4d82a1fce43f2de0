from datetime import timedelta

import pytest

from coffee_pos.models import CartItem, PendingOrder, now_local


def _headers(token):
    return {'X-CSRF-Token': token}


def _product_id(client, name):
    products = client.get('/api/products').get_json()['products']
    return next(p['id'] for p in products if p['name'] == name)


def _add(client, token, name):
    return client.post('/api/cart/add', json={'item_id': _product_id(client, name)}, headers=_headers(token))


def test_requires_session(client):
    r = client.get('/pos')
    assert r.status_code == 401
    assert r.get_json()['error'] == 'Debes iniciar sesión.'


def test_session_requires_user(client):
    assert client.post('/session', json={'user': '  '}).status_code == 400


def test_session_info(client, token):
    data = client.get('/session').get_json()
    assert data['user'] == 'barista'
    assert data['csrf_token'] == token


def test_post_without_csrf_is_rejected(client, token):
    r = client.post('/api/cart/clear')
    assert r.status_code == 403
    r = client.post('/api/cart/clear', headers={'X-CSRF-Token': 'wrong'})
    assert r.status_code == 403


def test_csrf_accepted_in_json_body(client, token):
    r = client.post('/api/cart/clear', json={'csrf_token': token})
    assert r.status_code == 200


def test_logs_are_not_served(client):
    assert client.get('/logs/performance.log').status_code == 404


def test_pos_state(client, token):
    r = client.get('/pos')
    assert r.status_code == 200
    data = r.get_json()
    assert data['categories'][0] == 'All'
    assert len(data['products']) == 8
    assert data['payment']['state'] == 'idle'
    assert r.headers['X-Frame-Options'] == 'DENY'


def test_products_by_category(client, token):
    data = client.get('/api/products?category=Tea').get_json()
    assert [p['name'] for p in data['products']] == ['Green Tea']


def test_cart_add_and_cash_checkout(client, token):
    _add(client, token, 'Americano')
    r = _add(client, token, 'Croissant')
    assert r.status_code == 200
    cart = r.get_json()['cart']
    assert cart['subtotal'] == pytest.approx(8.0)
    assert cart['tax'] == 0.64

    r = client.post('/api/checkout', json={'payment_method': 'cash'}, headers=_headers(token))
    assert r.status_code == 200
    order = r.get_json()['order']
    assert order['total'] == pytest.approx(8.64)
    assert order['status'] == 'pending'
    assert client.get('/api/cart').get_json()['cart']['item_count'] == 0


def test_cart_add_errors(client, token):
    assert client.post('/api/cart/add', json={}, headers=_headers(token)).status_code == 400
    assert client.post('/api/cart/add', json={'item_id': 'nope'}, headers=_headers(token)).status_code == 404


def test_cart_update_and_remove(client, token):
    latte = _product_id(client, 'Latte')
    _add(client, token, 'Latte')
    r = client.post('/api/cart/update', json={'item_id': latte, 'quantity': 3}, headers=_headers(token))
    assert r.get_json()['cart']['item_count'] == 3
    r = client.post('/api/cart/update', json={'item_id': latte, 'quantity': 'x'}, headers=_headers(token))
    assert r.status_code == 400
    r = client.post('/api/cart/remove', json={'item_id': latte}, headers=_headers(token))
    assert r.get_json()['cart']['items'] == []


def test_empty_checkout_is_400(client, token):
    r = client.post('/api/checkout', json={'payment_method': 'cash'}, headers=_headers(token))
    assert r.status_code == 400


def test_payment_return_creates_order_once(client, token, seeded_container):
    before = len(seeded_container.orders_service.get_orders())
    seeded_container.pending_order_repo.save(PendingOrder(
        items=[CartItem(id='x', name='Latte', price=5.5, category='Coffee', quantity=2)],
        total=11.0, tax=0.88, grand_total=11.88, customer_name='Ana',
    ))

    r = client.get('/pos?payment=success')
    assert r.status_code == 302
    assert r.headers['Location'].endswith('/pos')
    assert len(seeded_container.orders_service.get_orders()) == before + 1

    state = client.get('/pos').get_json()
    assert state['notification']['title'] == 'Payment Successful!'

    client.get('/pos?payment=success')
    assert len(seeded_container.orders_service.get_orders()) == before + 1


def test_dismiss_notification(client, token):
    client.get('/pos?payment=failed')
    assert client.get('/pos').get_json()['notification']['result'] == 'failed'
    client.post('/api/notification/dismiss', headers=_headers(token))
    assert client.get('/pos').get_json()['notification'] is None


def test_card_payment_flow(client, token, seeded_container, scheduler):
    _add(client, token, 'Latte')
    r = client.post('/api/checkout', json={'payment_method': 'card'}, headers=_headers(token))
    assert r.get_json()['payment']['is_open'] is True

    r = client.post('/api/payment/submit', json={'name': ''}, headers=_headers(token))
    assert r.status_code == 400
    assert r.get_json()['payment']['state'] == 'idle'

    r = client.post('/api/payment/submit', json={'name': 'Ana'}, headers=_headers(token))
    assert r.status_code == 200
    assert r.get_json()['payment']['state'] == 'processing'
    assert client.post('/api/payment/checkout', headers=_headers(token)).status_code == 409

    scheduler.advance(2)
    r = client.get('/api/payment/invoice-url')
    assert r.get_json()['invoice_url'].endswith('inv_123')

    r = client.post('/api/payment/checkout', headers=_headers(token))
    assert r.status_code == 200
    assert r.get_json()['checkout_url'].endswith('inv_123')
    assert seeded_container.pending_order_repo.peek().customer_name == 'Ana'

    # El redirect cierra el diálogo
    assert client.get('/api/payment').get_json()['payment']['is_open'] is False
    assert client.get('/api/payment/invoice-url').status_code == 404
    assert scheduler.pending == 0

    r = client.get('/pos?payment=success')
    assert r.status_code == 302
    assert client.get('/api/cart').get_json()['cart']['item_count'] == 0


def test_close_payment_dialog(client, token, scheduler):
    _add(client, token, 'Latte')
    client.post('/api/checkout', json={'payment_method': 'card'}, headers=_headers(token))
    client.post('/api/payment/submit', json={'name': 'Ana'}, headers=_headers(token))

    client.post('/api/payment/close', headers=_headers(token))
    assert client.get('/api/payment').get_json()['payment']['is_open'] is False
    assert client.get('/api/payment/invoice-url').status_code == 404
    assert scheduler.pending == 0


def test_gateway_failure_is_502_and_retryable(client, token, gateway):
    gateway.create_result = {'ok': False, 'error': 'Payment service unavailable. Please try again.'}
    _add(client, token, 'Latte')
    client.post('/api/checkout', json={'payment_method': 'card'}, headers=_headers(token))

    r = client.post('/api/payment/submit', json={'name': 'Ana'}, headers=_headers(token))
    assert r.status_code == 502
    assert r.get_json()['error'] == 'Payment service unavailable. Please try again.'

    r = client.post('/api/payment/retry', headers=_headers(token))
    assert r.status_code == 200
    assert r.get_json()['payment']['customer']['name'] == 'Ana'
    assert client.post('/api/payment/retry', headers=_headers(token)).status_code == 409


def test_order_status_transitions(client, token):
    _add(client, token, 'Espresso')
    order_id = client.post('/api/checkout', json={'payment_method': 'cash'},
                           headers=_headers(token)).get_json()['order_id']
    url = f'/api/orders/{order_id}/status'

    r = client.post(url, json={'status': 'completed'}, headers=_headers(token))
    assert r.status_code == 409
    assert r.get_json()['allowed'] == ['cancelled', 'preparing']

    r = client.post(url, json={'status': 'preparing'}, headers=_headers(token))
    assert r.status_code == 200
    assert r.get_json()['order']['status'] == 'preparing'

    assert client.post(url, json={'status': 'bogus'}, headers=_headers(token)).status_code == 400
    assert client.post('/api/orders/missing/status', json={'status': 'ready'},
                       headers=_headers(token)).status_code == 404


def test_cancel_completed_order_is_409(client, token):
    completed = client.get('/api/orders?status=completed').get_json()['orders']
    r = client.post(f"/api/orders/{completed[0]['id']}/cancel", headers=_headers(token))
    assert r.status_code == 409

    active = client.get('/api/orders/active').get_json()['orders']
    r = client.post(f"/api/orders/{active[0]['id']}/cancel", headers=_headers(token))
    assert r.get_json()['order']['status'] == 'cancelled'
    assert client.post('/api/orders/missing/cancel', headers=_headers(token)).status_code == 404


def test_orders_filter_and_stats(client, token):
    assert client.get('/api/orders?status=lost').status_code == 400
    data = client.get('/api/orders/stats').get_json()
    assert data['stats']['completed_orders'] == 2
    assert data['stats']['total_sales'] == pytest.approx(18.36)
    assert data['todays_orders'] == 3
    assert client.get('/api/orders/missing').status_code == 404


def test_orders_stats_follow_the_clock(client, token, seeded_container):
    # Pasada la medianoche, sin ninguna orden nueva
    seeded_container.orders_service._clock = lambda: now_local() + timedelta(days=1)
    data = client.get('/api/orders/stats').get_json()
    assert data['stats']['total_orders'] == 0
    assert data['stats']['total_sales'] == 0
    assert data['todays_orders'] == 0


def test_inventory_crud(client, token):
    r = client.post('/api/inventory', json={'name': 'Mocha', 'category': 'Coffee', 'price': 6.0,
                                            'stock': 3, 'low_stock_threshold': 5},
                    headers=_headers(token))
    assert r.status_code == 201
    item_id = r.get_json()['item']['id']

    low = client.get('/api/inventory/low-stock').get_json()
    assert item_id in [i['id'] for i in low['items']]

    r = client.post(f'/api/inventory/{item_id}/stock', json={'stock': 40}, headers=_headers(token))
    assert r.get_json()['is_low_stock'] is False
    assert client.post(f'/api/inventory/{item_id}/stock', json={'stock': -1},
                       headers=_headers(token)).status_code == 400
    assert client.post('/api/inventory/missing/stock', json={'stock': 1},
                       headers=_headers(token)).status_code == 404

    r = client.patch(f'/api/inventory/{item_id}', json={'price': 6.5}, headers=_headers(token))
    assert r.get_json()['item']['price'] == 6.5

    found = client.get('/api/inventory?q=mocha').get_json()['items']
    assert [i['id'] for i in found] == [item_id]

    assert client.delete(f'/api/inventory/{item_id}', headers=_headers(token)).status_code == 200
    assert client.get(f'/api/inventory/{item_id}').status_code == 404
    assert client.delete(f'/api/inventory/{item_id}', headers=_headers(token)).status_code == 404


@pytest.mark.parametrize('payload', [
    {'category': 'Coffee', 'price': 1},
    {'name': 'X', 'price': 1},
    {'name': 'X', 'category': 'Coffee', 'price': 'abc'},
    {'name': 'X', 'category': 'Coffee', 'price': -2},
])
def test_inventory_create_validation(client, token, payload):
    assert client.post('/api/inventory', json=payload, headers=_headers(token)).status_code == 400


def test_inventory_summary(client, token):
    summary = client.get('/api/inventory/summary').get_json()['summary']
    assert summary['total_items'] == 8


def test_audit_log(client, token):
    logs = client.get('/api/audit?type=sistema').get_json()['logs']
    assert logs[0]['message'] == 'Inicio de sesión: barista'


def test_logout(client, token):
    assert client.post('/logout', headers=_headers(token)).status_code == 200
    assert client.get('/pos').status_code == 401
