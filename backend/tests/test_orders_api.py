# Overview: Pytest coverage for the order API (public checkout, invoice, staff lifecycle).

"""
Order API tests.

Public checkout identifies the store by header; every staff route is
scoped to the API key's business and answers 404 for other tenants.
"""

import io
import json
import os

from storefront.models import Order, Product

from conftest import order_payload


def _media_files(app):
    return sorted(
        os.path.join(root, name)
        for root, _, names in os.walk(app.config['MEDIA_ROOT'])
        for name in names
    )


def _checkout(client, store, payload, headers=None):
    headers = dict(headers or {})
    headers.setdefault('store-id', str(store.id))
    return client.post('/api/orders', json=payload, headers=headers)


class TestPublicCheckout:
    def test_checkout_returns_summary(self, client, db_session, store, product, cheap_product):
        payload = order_payload(
            (product.id, 2), (cheap_product.id, 1),
            delivery={"method": "delivery", "fee_cents": 200},
        )

        response = _checkout(client, store, payload)

        assert response.status_code == 201
        body = response.get_json()
        assert body['success'] is True
        assert body['order']['total_cents'] == 2700
        assert body['order']['status'] == 'pending'
        order = db_session.get(Order, body['order']['id'])
        assert body['order']['invoice_url'] == f"https://sqale.shop/invoice/{order.id}/{order.invoice_token}"

    def test_store_resolved_by_url_header(self, client, db_session, store, product):
        response = client.post(
            '/api/orders',
            json=order_payload((product.id, 1)),
            headers={'store-url': 'https://ACME.sqale.shop/'},
        )
        assert response.status_code == 201

    def test_missing_store_header(self, client, db_session, product):
        response = client.post('/api/orders', json=order_payload((product.id, 1)))
        assert response.status_code == 400
        assert response.get_json()['error'] == 'StoreResolutionError'

    def test_unknown_store(self, client, db_session, product):
        response = client.post('/api/orders', json=order_payload((product.id, 1)), headers={'store-id': '999'})
        assert response.status_code == 404

    def test_insufficient_inventory_response(self, client, db_session, store, product):
        response = _checkout(client, store, order_payload((product.id, 25)))

        assert response.status_code == 400
        body = response.get_json()
        assert body['error'] == 'InsufficientInventory'
        assert body['details']['available'] == 10
        assert db_session.get(Product, product.id).inventory == 10

    def test_validation_error_response(self, client, db_session, store):
        response = _checkout(client, store, {"customer": {"email": "a@b.co"}, "items": []})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'ValidationError'

    def test_array_body_rejected(self, client, db_session, store, product):
        response = _checkout(client, store, [order_payload((product.id, 1))])
        assert response.status_code == 400
        assert response.get_json()['error'] == 'ValidationError'
        assert db_session.query(Order).count() == 0

    def test_multipart_checkout_with_payment_proof(self, client, db_session, store, product):
        data = {
            'orderData': json.dumps(order_payload((product.id, 1))),
            'paymentProof': (io.BytesIO(b'%PDF-1.4 proof'), 'receipt.pdf'),
        }
        response = client.post(
            '/api/orders', data=data, headers={'store-id': str(store.id)},
            content_type='multipart/form-data',
        )

        assert response.status_code == 201
        order = db_session.get(Order, response.get_json()['order']['id'])
        assert order.payment_proof_url.startswith('/media/payment-proofs/')
        assert order.payment_proof_url.endswith('receipt.pdf')

    def test_unsupported_proof_type(self, client, db_session, store, product):
        data = {
            'orderData': json.dumps(order_payload((product.id, 1))),
            'paymentProof': (io.BytesIO(b'MZ'), 'virus.exe'),
        }
        response = client.post(
            '/api/orders', data=data, headers={'store-id': str(store.id)},
            content_type='multipart/form-data',
        )
        assert response.status_code == 400

    def test_rejected_checkout_stores_no_proof(self, app, client, db_session, store, product):
        before = _media_files(app)
        data = {
            'orderData': json.dumps(order_payload((product.id, 999))),
            'paymentProof': (io.BytesIO(b'%PDF-1.4 proof'), 'receipt.pdf'),
        }
        response = client.post(
            '/api/orders', data=data, headers={'store-id': str(store.id)},
            content_type='multipart/form-data',
        )

        assert response.status_code == 400
        assert response.get_json()['error'] == 'InsufficientInventory'
        assert db_session.query(Order).count() == 0
        assert _media_files(app) == before

    def test_invalid_payload_stores_no_proof(self, app, client, db_session, store):
        before = _media_files(app)
        data = {
            'orderData': json.dumps({"customer": {"email": "a@b.co"}, "items": []}),
            'paymentProof': (io.BytesIO(b'%PDF-1.4 proof'), 'receipt.pdf'),
        }
        response = client.post(
            '/api/orders', data=data, headers={'store-id': str(store.id)},
            content_type='multipart/form-data',
        )

        assert response.status_code == 400
        assert _media_files(app) == before

    def test_staff_checkout_is_not_guest(self, client, db_session, store, product, auth_headers):
        response = _checkout(client, store, order_payload((product.id, 1)), headers=auth_headers)

        order = db_session.get(Order, response.get_json()['order']['id'])
        assert order.is_guest_order is False
        assert order.source == 'admin'
        assert order.timeline[0].updated_by == 'Front desk'

    def test_invalid_key_rejected_even_on_public_route(self, client, db_session, store, product):
        response = _checkout(client, store, order_payload((product.id, 1)), headers={'Authorization': 'Bearer nope'})
        assert response.status_code == 401


class TestInvoice:
    def test_public_invoice(self, client, db_session, store, product):
        created = _checkout(client, store, order_payload((product.id, 1))).get_json()['order']
        order = db_session.get(Order, created['id'])

        response = client.get(f"/api/orders/invoice/{order.id}/{order.invoice_token}")
        assert response.status_code == 200
        assert response.get_json()['order']['order_number'] == order.order_number
        assert 'invoice_token' not in response.get_json()['order']

        assert client.get(f"/api/orders/invoice/{order.id}/wrong").status_code == 404


class TestStaffRoutes:
    def _create(self, client, store, product):
        return _checkout(client, store, order_payload((product.id, 2))).get_json()['order']['id']

    def test_requires_auth(self, client, db_session):
        assert client.get('/api/orders').status_code == 401

    def test_list_and_get(self, client, db_session, store, product, auth_headers):
        order_id = self._create(client, store, product)

        listing = client.get('/api/orders?limit=5', headers=auth_headers).get_json()
        assert listing['count'] == 1
        assert listing['pagination']['per_page'] == 5

        detail = client.get(f'/api/orders/{order_id}', headers=auth_headers).get_json()
        assert detail['order']['items'][0]['quantity'] == 2

    def test_other_tenant_gets_404(self, client, db_session, store, product, other_auth_headers):
        order_id = self._create(client, store, product)

        assert client.get(f'/api/orders/{order_id}', headers=other_auth_headers).status_code == 404
        response = client.patch(f'/api/orders/{order_id}/status', json={'status': 'shipped'}, headers=other_auth_headers)
        assert response.status_code == 404
        assert db_session.get(Order, order_id).status == 'pending'

    def test_status_payment_and_notes(self, client, db_session, store, product, auth_headers):
        order_id = self._create(client, store, product)

        response = client.patch(f'/api/orders/{order_id}/payment', json={'payment_status': 'completed'}, headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json()['order']['status'] == 'confirmed'

        response = client.patch(f'/api/orders/{order_id}/status', json={'status': 'shipped', 'note': 'Out for delivery'}, headers=auth_headers)
        order = response.get_json()['order']
        assert order['status'] == 'shipped'
        assert order['timeline'][-1]['note'] == 'Out for delivery'
        assert order['timeline'][-1]['updated_by'] == 'Front desk'

        response = client.post(f'/api/orders/{order_id}/notes', json={'note': 'Fragile', 'is_internal': True}, headers=auth_headers)
        assert response.get_json()['order']['notes']['internal'] == 'Fragile'

    def test_invalid_status(self, client, db_session, store, product, auth_headers):
        order_id = self._create(client, store, product)
        response = client.patch(f'/api/orders/{order_id}/status', json={'status': 'lost'}, headers=auth_headers)
        assert response.status_code == 400

    def test_cancel_restores_stock(self, client, db_session, store, product, auth_headers):
        order_id = self._create(client, store, product)
        assert db_session.get(Product, product.id).inventory == 8

        response = client.post(f'/api/orders/{order_id}/cancel', json={'reason': 'Duplicate'}, headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()['order']['status'] == 'cancelled'
        assert db_session.get(Product, product.id).inventory == 10

        again = client.post(f'/api/orders/{order_id}/cancel', json={}, headers=auth_headers)
        assert again.status_code == 400
        assert again.get_json()['error'] == 'OrderNotCancellable'

    def test_refund_flow(self, client, db_session, store, product, auth_headers):
        order_id = self._create(client, store, product)
        client.patch(f'/api/orders/{order_id}/payment', json={'payment_status': 'completed'}, headers=auth_headers)
        client.patch(f'/api/orders/{order_id}/status', json={'status': 'delivered'}, headers=auth_headers)

        too_much = client.post(f'/api/orders/{order_id}/refund', json={'amount_cents': 3000}, headers=auth_headers)
        assert too_much.status_code == 400
        assert too_much.get_json()['error'] == 'InvalidRefundAmount'

        response = client.post(f'/api/orders/{order_id}/refund', json={'amount_cents': 500, 'reason': 'Scratch'}, headers=auth_headers)
        body = response.get_json()
        assert response.status_code == 200
        assert body['remaining_cents'] == 1500
        assert body['refund']['amount_cents'] == 500
        assert body['order']['status'] == 'partially_refunded'

    def test_form_encoded_status_body_rejected(self, client, db_session, store, product, auth_headers):
        order_id = self._create(client, store, product)
        response = client.patch(
            f'/api/orders/{order_id}/status', data='status=shipped',
            content_type='application/x-www-form-urlencoded', headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.get_json()['error'] == 'ValidationError'
        assert db_session.get(Order, order_id).status == 'pending'

    def test_malformed_refund_body_rejected(self, client, db_session, store, product, auth_headers):
        order_id = self._create(client, store, product)
        client.patch(f'/api/orders/{order_id}/payment', json={'payment_status': 'completed'}, headers=auth_headers)

        response = client.post(
            f'/api/orders/{order_id}/refund', data='{bad json',
            content_type='application/json', headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.get_json()['error'] == 'ValidationError'
        assert db_session.get(Order, order_id).payment_refunded_cents == 0

    def test_non_object_body_rejected(self, client, db_session, store, product, auth_headers):
        order_id = self._create(client, store, product)
        response = client.post(f'/api/orders/{order_id}/notes', json=['note'], headers=auth_headers)

        assert response.status_code == 400
        assert response.get_json()['error'] == 'ValidationError'

    def test_empty_cancel_body_accepted(self, client, db_session, store, product, auth_headers):
        order_id = self._create(client, store, product)
        response = client.post(f'/api/orders/{order_id}/cancel', headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()['order']['status'] == 'cancelled'
