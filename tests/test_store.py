import pytest
from sqlalchemy import func

from finova.models import GymRevenue, StoreCartItem, StoreInventoryTransaction, StoreItem, StoreOrder, StoreRefund


@pytest.fixture
def item_id(client, admin, auth_headers):
    headers = auth_headers(admin)
    response = client.post('/api/store/categories', json={'name': 'Supplements'}, headers=headers)
    assert response.status_code == 201
    category_id = response.get_json()['data']['id']
    response = client.post('/api/store/items', headers=headers, json={
        'category_id': category_id,
        'name': 'Whey Protein',
        'description': 'Vanilla, 1kg',
        'price': 1000,
        'member_discount_percentage': 10,
        'stock_quantity': 10,
    })
    assert response.status_code == 201
    return response.get_json()['data']['id']


def _cart(client, body, headers=None):
    return client.post('/api/store/cart', json=body, headers=headers)


def _add(client, cart_id, item_id, quantity=1, headers=None):
    return client.post('/api/store/cart/items', json={'cart_id': cart_id, 'item_id': item_id, 'quantity': quantity},
                       headers=headers)


def _checkout(client, cart_id, email, headers=None, **extra):
    body = {'cart_id': cart_id, 'customer_name': 'Test Buyer', 'customer_email': email}
    body.update(extra)
    return client.post('/api/store/checkout', json=body, headers=headers)


def _member_order(client, user, headers, item_id, quantity=1, **extra):
    cart_id = _cart(client, {'user_id': user.id}, headers).get_json()['data']['id']
    _add(client, cart_id, item_id, quantity, headers)
    return _checkout(client, cart_id, user.email, headers, **extra)


def test_item_creation_records_initial_stock(client, item_id):
    items = client.get('/api/store/items?search=whey').get_json()['data']
    assert [row['id'] for row in items] == [item_id]
    assert items[0]['category_name'] == 'Supplements'
    assert items[0]['in_stock'] is True

    entry = StoreInventoryTransaction.query.filter_by(item_id=item_id).one()
    assert (entry.transaction_type, entry.quantity, entry.new_stock) == ('stock_in', 10, 10)


def test_duplicate_category_conflicts(client, admin, auth_headers, item_id):
    response = client.post('/api/store/categories', json={'name': 'Supplements'}, headers=auth_headers(admin))
    assert response.status_code == 409


def test_members_cannot_manage_catalog(client, member, auth_headers):
    response = client.post('/api/store/categories', json={'name': 'Gear'}, headers=auth_headers(member))
    assert response.status_code == 403


def test_member_cart_is_reused(client, member, auth_headers, item_id):
    headers = auth_headers(member)
    first = _cart(client, {'user_id': member.id}, headers)
    assert first.status_code == 201
    again = _cart(client, {'user_id': member.id}, headers)
    assert again.status_code == 200
    assert again.get_json()['message'] == 'Existing cart returned'
    assert again.get_json()['data']['id'] == first.get_json()['data']['id']


def test_member_cart_is_private(client, member, make_user, front_desk, auth_headers, item_id):
    response = _cart(client, {'user_id': member.id})
    assert response.status_code == 401
    assert response.get_json()['error']['message'] == 'Please log in to access this feature'

    stranger = make_user('member')
    assert _cart(client, {'user_id': member.id}, auth_headers(stranger)).status_code == 403

    cart_id = _cart(client, {'user_id': member.id}, auth_headers(member)).get_json()['data']['id']
    assert client.get(f'/api/store/cart/{cart_id}').status_code == 401
    assert _add(client, cart_id, item_id).status_code == 401
    assert client.get(f'/api/store/cart/{cart_id}', headers=auth_headers(stranger)).status_code == 403
    assert client.get(f'/api/store/cart/{cart_id}', headers=auth_headers(front_desk)).status_code == 200


def test_cart_needs_owner(client):
    response = _cart(client, {'guest_email': 'guest@finova.com'})
    assert response.status_code == 400


def test_cart_rejects_malformed_guest_email(client):
    response = _cart(client, {'guest_email': 'guest@@finova', 'guest_name': 'Gus'})
    assert response.status_code == 400
    assert response.get_json()['error']['field'] == 'guest_email'


def test_cart_rejects_more_than_stock(client, member, auth_headers, item_id):
    headers = auth_headers(member)
    cart_id = _cart(client, {'user_id': member.id}, headers).get_json()['data']['id']
    response = _add(client, cart_id, item_id, 11, headers)
    assert response.status_code == 400
    assert response.get_json()['error']['field'] == 'quantity'


def test_member_cart_shows_discount(client, member, auth_headers, item_id):
    headers = auth_headers(member)
    cart_id = _cart(client, {'user_id': member.id}, headers).get_json()['data']['id']
    data = _add(client, cart_id, item_id, 2, headers).get_json()['data']
    assert data['subtotal'] == 2000
    assert data['member_discount_total'] == 200
    assert data['total'] == 1800

    response = client.put(f'/api/store/cart/{cart_id}/items/{item_id}', json={'quantity': 0}, headers=headers)
    assert response.get_json()['data']['items'] == []


def test_member_checkout_redeems_and_earns_points(client, db, make_user, auth_headers, item_id):
    buyer = make_user('member', loyalty_points=50)
    headers = auth_headers(buyer)
    response = _member_order(client, buyer, headers, item_id, 2, loyalty_points_to_redeem=50)
    assert response.status_code == 201
    order = response.get_json()['data']
    assert order['order_number'].startswith('ORD-')
    assert order['member_discount_total'] == 200
    assert order['loyalty_points_used'] == 50
    assert order['final_amount'] == 1750
    assert order['points_earned'] == 17
    assert order['status'] == 'pending'

    assert db.session.get(StoreItem, item_id).stock_quantity == 8
    assert buyer.member_profile.loyalty_points == 17
    cart_id = order['cart_id']
    assert client.get(f'/api/store/cart/{cart_id}', headers=headers).get_json()['data']['items'] == []

    fetched = client.get(f"/api/store/orders/{order['order_number']}").get_json()['data']
    assert fetched['items'][0]['quantity'] == 2


def test_only_the_account_holder_redeems_points(client, db, make_user, front_desk, auth_headers, item_id):
    buyer = make_user('member', loyalty_points=500)
    cart_id = _cart(client, {'user_id': buyer.id}, auth_headers(buyer)).get_json()['data']['id']
    _add(client, cart_id, item_id, headers=auth_headers(buyer))

    response = _checkout(client, cart_id, buyer.email, loyalty_points_to_redeem=500)
    assert response.status_code == 401
    response = _checkout(client, cart_id, buyer.email, auth_headers(front_desk), loyalty_points_to_redeem=500)
    assert response.status_code == 403
    assert buyer.member_profile.loyalty_points == 500
    assert StoreOrder.query.count() == 0
    assert db.session.get(StoreItem, item_id).stock_quantity == 10

    response = _checkout(client, cart_id, buyer.email, auth_headers(front_desk))
    assert response.status_code == 201
    assert response.get_json()['data']['loyalty_points_used'] == 0


def test_guest_checkout_pays_full_price(client, item_id):
    cart_id = _cart(client, {'guest_email': 'Guest@Finova.com', 'guest_name': 'Gus'}).get_json()['data']['id']
    _add(client, cart_id, item_id)
    order = _checkout(client, cart_id, 'guest@finova.com', loyalty_points_to_redeem=100).get_json()['data']
    assert order['final_amount'] == 1000
    assert order['loyalty_points_used'] == 0
    assert order['points_earned'] == 0
    assert order['user_id'] is None


def test_checkout_fails_when_stock_ran_out(client, admin, member, auth_headers, item_id):
    headers = auth_headers(member)
    cart_id = _cart(client, {'user_id': member.id}, headers).get_json()['data']['id']
    _add(client, cart_id, item_id, 3, headers)
    client.put(f'/api/store/items/{item_id}/stock', json={'stock_quantity': 2}, headers=auth_headers(admin))

    response = _checkout(client, cart_id, member.email, headers)
    assert response.status_code == 400
    assert response.get_json()['error']['message'] == 'Insufficient stock for Whey Protein. Available: 2, Requested: 3'
    assert StoreOrder.query.count() == 0
    assert StoreCartItem.query.filter_by(cart_id=cart_id).count() == 1


def test_empty_cart_cannot_check_out(client, member, auth_headers):
    headers = auth_headers(member)
    cart_id = _cart(client, {'user_id': member.id}, headers).get_json()['data']['id']
    response = _checkout(client, cart_id, member.email, headers)
    assert response.status_code == 400
    assert response.get_json()['error']['message'] == 'Cart is empty'


def test_cancelling_order_restocks(client, db, admin, member, auth_headers, item_id):
    order_id = _member_order(client, member, auth_headers(member), item_id, 3).get_json()['data']['id']
    assert db.session.get(StoreItem, item_id).stock_quantity == 7

    response = client.put(f'/api/store/admin/orders/{order_id}/status', json={'status': 'cancelled'},
                          headers=auth_headers(admin))
    assert response.status_code == 200
    assert [row['status'] for row in response.get_json()['data']['status_history']] == ['cancelled', 'pending']
    assert db.session.get(StoreItem, item_id).stock_quantity == 10

    response = client.put(f'/api/store/admin/orders/{order_id}/status', json={'status': 'ready'},
                          headers=auth_headers(admin))
    assert response.status_code == 400


def test_payment_records_store_revenue_once(client, admin, member, auth_headers, item_id):
    order_id = _member_order(client, member, auth_headers(member), item_id).get_json()['data']['id']

    for _ in range(2):
        response = client.put(f'/api/store/admin/orders/{order_id}/payment', json={'payment_status': 'paid'},
                              headers=auth_headers(admin))
        assert response.status_code == 200
    row = GymRevenue.query.filter_by(revenue_source='store_sales').one()
    assert row.amount == 900
    assert row.reference_id == order_id


def test_refunds_are_capped_at_the_order_amount(client, db, admin, member, auth_headers, item_id):
    order_id = _member_order(client, member, auth_headers(member), item_id).get_json()['data']['id']
    headers = auth_headers(admin)
    url = f'/api/store/admin/orders/{order_id}/refund'
    body = {'refund_amount': 300, 'refund_reason': 'Damaged seal', 'refund_method': 'cash'}

    response = client.post(url, json=body, headers=headers)
    assert response.status_code == 400
    assert response.get_json()['error']['message'] == 'Only paid orders can be refunded'

    client.put(f'/api/store/admin/orders/{order_id}/payment', json={'payment_status': 'paid'}, headers=headers)
    response = client.post(url, json=body, headers=headers)
    assert response.status_code == 200
    order = response.get_json()['data']['order']
    assert (order['refund_amount'], order['payment_status']) == (300, 'paid')

    response = client.post(url, json=dict(body, refund_amount=700), headers=headers)
    assert response.status_code == 400
    assert response.get_json()['error']['message'] == 'Refund amount cannot exceed order amount'

    response = client.post(url, json=dict(body, refund_amount=600), headers=headers)
    assert response.get_json()['data']['order']['payment_status'] == 'refunded'
    assert StoreRefund.query.filter_by(order_id=order_id).count() == 2
    total = (db.session.query(func.sum(GymRevenue.amount))
             .filter(GymRevenue.revenue_source == 'store_sales').scalar())
    assert total == 0


def test_promotion_applies_at_checkout(client, admin, member, auth_headers, item_id):
    headers = auth_headers(admin)
    promo = {'code': 'save20', 'name': 'Save 20', 'discount_type': 'percentage', 'discount_value': 20,
             'max_discount_amount': 150, 'usage_limit': 1}
    response = client.post('/api/store/admin/promotions', json=promo, headers=headers)
    assert response.status_code == 201
    assert response.get_json()['data']['code'] == 'SAVE20'
    assert client.post('/api/store/admin/promotions', json=promo, headers=headers).status_code == 409

    check = client.post('/api/store/validate-promo-code', json={'code': 'SAVE20', 'cart_total': 500})
    assert check.get_json()['data']['discount_amount'] == 100
    check = client.post('/api/store/validate-promo-code', json={'code': 'SAVE20', 'cart_total': 1000})
    assert check.get_json()['data']['discount_amount'] == 150

    response = _member_order(client, member, auth_headers(member), item_id, 2, promotional_code='save20')
    order = response.get_json()['data']
    assert order['promotional_code'] == 'SAVE20'
    assert order['promotional_discount'] == 150
    assert order['final_amount'] == 1650

    response = client.post('/api/store/validate-promo-code', json={'code': 'SAVE20', 'cart_total': 500})
    assert response.status_code == 404
    assert response.get_json()['error']['message'] == 'Invalid or expired promotional code'


def test_promotion_rules(client, admin, member, auth_headers):
    headers = auth_headers(admin)
    response = client.post('/api/store/admin/promotions', headers=headers, json={
        'code': 'MEMBERS50', 'name': 'Members 50 off', 'discount_type': 'fixed', 'discount_value': 50,
        'min_order_amount': 500, 'is_member_only': True, 'usage_limit': 10})
    promotion_id = response.get_json()['data']['id']

    response = client.post('/api/store/validate-promo-code', json={'code': 'MEMBERS50', 'cart_total': 600})
    assert response.get_json()['error']['message'] == 'This promotion is for members only'
    response = client.post('/api/store/validate-promo-code', json={'code': 'MEMBERS50', 'cart_total': 100},
                           headers=auth_headers(member))
    assert response.get_json()['error']['message'] == 'Minimum order amount of 500.00 required'
    response = client.post('/api/store/validate-promo-code', json={'code': 'MEMBERS50', 'cart_total': 600},
                           headers=auth_headers(member))
    assert response.get_json()['data']['discount_amount'] == 50

    response = client.put(f'/api/store/admin/promotions/{promotion_id}', json={'is_active': False}, headers=headers)
    assert response.get_json()['data']['is_active'] is False
    assert [row['code'] for row in client.get('/api/store/admin/promotions', headers=headers)
            .get_json()['data']] == ['MEMBERS50']

    response = client.post('/api/store/admin/promotions', headers=headers, json={
        'code': 'TOOMUCH', 'name': 'Broken', 'discount_type': 'percentage', 'discount_value': 150})
    assert response.status_code == 400


def test_member_order_history(client, member, auth_headers, item_id):
    headers = auth_headers(member)
    _member_order(client, member, headers, item_id)

    orders = client.get('/api/store/member/orders', headers=headers).get_json()['data']
    assert len(orders) == 1
    assert StoreOrder.query.count() == 1


def test_low_stock_alert_and_sales_report(client, admin, auth_headers, item_id):
    headers = auth_headers(admin)
    client.put(f'/api/store/items/{item_id}/stock', json={'stock_quantity': 3, 'notes': 'Count'}, headers=headers)
    alerts = client.get('/api/store/admin/alerts/low-stock', headers=headers).get_json()['data']
    assert alerts == [{'id': item_id, 'name': 'Whey Protein', 'current_stock': 3, 'threshold': 5}]

    report = client.get('/api/store/admin/reports/sales', headers=headers).get_json()['data']
    assert report['total_orders'] == 0
    assert report['average_order_value'] == 0


def test_wishlist(client, member, auth_headers, item_id):
    headers = auth_headers(member)
    assert client.post('/api/store/member/wishlist', json={'item_id': item_id}, headers=headers).status_code == 201
    assert client.post('/api/store/member/wishlist', json={'item_id': item_id}, headers=headers).status_code == 409
    rows = client.get('/api/store/member/wishlist', headers=headers).get_json()['data']
    assert [row['id'] for row in rows] == [item_id]
    assert client.delete(f'/api/store/member/wishlist/{item_id}', headers=headers).status_code == 200
    assert client.delete(f'/api/store/member/wishlist/{item_id}', headers=headers).status_code == 404


def test_reviews_from_guests_and_members(client, member, auth_headers, item_id):
    client.post(f'/api/store/items/{item_id}/reviews', json={'rating': 4})
    client.post(f'/api/store/items/{item_id}/reviews', json={'rating': 5, 'comment': 'Great'},
                headers=auth_headers(member))
    reviews = client.get(f'/api/store/items/{item_id}/reviews').get_json()['data']
    assert {row['reviewer_name'] for row in reviews} == {'Anonymous', 'Alice Walker'}

    item = client.get('/api/store/items').get_json()['data'][0]
    assert item['average_rating'] == 4.5
    assert item['review_count'] == 2

    response = client.post(f'/api/store/items/{item_id}/reviews', json={'rating': 6})
    assert response.status_code == 400
