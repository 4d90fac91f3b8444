"""
Store carts, checkout and inventory bookkeeping.

Every stock change writes a ``StoreInventoryTransaction`` and every order
status change writes a ``StoreOrderStatusHistory`` row, so both can be
audited after the fact.
"""
import math

from flask import current_app
from sqlalchemy import func

from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..extensions import atomic, db
from ..models import (StoreCart, StoreCartItem, StoreInventoryTransaction, StoreItem, StoreOrder, StoreOrderItem,
                      StoreOrderStatusHistory, StorePromotion, StoreRefund, User, log_activity)
from ..utils import day_bounds, generate_order_number, money, utcnow
from . import loyalty, revenue


def _is_member(user):
    return bool(user and user.role == 'member' and user.member_profile)


def record_stock_change(item, new_stock, transaction_type, reference_type=None, reference_id=None, notes=None,
                        created_by=None):
    previous = item.stock_quantity
    item.stock_quantity = new_stock
    db.session.add(StoreInventoryTransaction(
        item_id=item.id,
        transaction_type=transaction_type,
        quantity=new_stock - previous,
        previous_stock=previous,
        new_stock=new_stock,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
        created_by=created_by,
    ))


def add_status(order, status, notes=None):
    order.status = status
    db.session.add(StoreOrderStatusHistory(order_id=order.id, status=status, notes=notes))


def cart_summary(cart):
    member = _is_member(cart.user)
    lines = []
    subtotal = 0.0
    discount = 0.0
    for line in cart.items.order_by(StoreCartItem.id).all():
        line_total = line.price_at_time * line.quantity
        line_discount = line.price_at_time * line.item.member_discount_percentage / 100 * line.quantity if member else 0
        subtotal += line_total
        discount += line_discount
        lines.append(line.to_dict(name=line.item.name, line_total=money(line_total),
                                  member_discount=money(line_discount), stock_quantity=line.item.stock_quantity))
    return cart.to_dict(items=lines, subtotal=money(subtotal), member_discount_total=money(discount),
                        total=money(subtotal - discount), is_member=member)


def create_or_get_cart(data):
    with atomic('Failed to create cart'):
        if data.user_id:
            if not db.session.get(User, data.user_id):
                raise NotFoundError('User not found')
            cart = StoreCart.query.filter_by(user_id=data.user_id).first()
            if cart:
                return cart, False
            cart = StoreCart(user_id=data.user_id)
        else:
            cart = StoreCart(guest_email=data.guest_email, guest_name=data.guest_name, guest_phone=data.guest_phone)
        db.session.add(cart)
    return cart, True


def add_to_cart(cart_id, item_id, quantity):
    with atomic('Failed to add item to cart'):
        cart = db.session.get(StoreCart, cart_id)
        if not cart:
            raise NotFoundError('Cart not found')
        item = db.session.get(StoreItem, item_id)
        if not item or not item.is_active:
            raise NotFoundError('Item not found')

        line = StoreCartItem.query.filter_by(cart_id=cart.id, item_id=item.id).first()
        wanted = quantity + (line.quantity if line else 0)
        if wanted > item.stock_quantity:
            raise ValidationError(f'Insufficient stock for {item.name}. Available: {item.stock_quantity}',
                                  field='quantity')
        discount = item.member_discount_percentage if _is_member(cart.user) else 0
        if line:
            line.quantity = wanted
            line.price_at_time = item.price
            line.member_discount_applied = discount
        else:
            db.session.add(StoreCartItem(cart_id=cart.id, item_id=item.id, quantity=wanted, price_at_time=item.price,
                                         member_discount_applied=discount))
    return cart


def update_cart_item(cart_id, item_id, quantity):
    with atomic('Failed to update cart'):
        line = StoreCartItem.query.filter_by(cart_id=cart_id, item_id=item_id).first()
        if not line:
            raise NotFoundError('Item not found in cart')
        if quantity == 0:
            db.session.delete(line)
        else:
            if quantity > line.item.stock_quantity:
                raise ValidationError(
                    f'Insufficient stock for {line.item.name}. Available: {line.item.stock_quantity}',
                    field='quantity')
            line.quantity = quantity
        cart = line.cart
    return cart


def checkout(data, user=None):
    """
    Turn a cart into an order.

    Stock is decremented, inventory transactions and the initial status are
    recorded, the promotion is used up, loyalty points are redeemed and
    earned, and the cart is emptied, all inside one transaction. Only the
    cart owner (``user``) may redeem the member's points.
    """
    with atomic('Failed to process checkout'):
        cart = db.session.get(StoreCart, data.cart_id)
        if not cart:
            raise NotFoundError('Cart not found')
        lines = cart.items.order_by(StoreCartItem.id).all()
        if not lines:
            raise ValidationError('Cart is empty', field='cart_id')

        member = cart.user if _is_member(cart.user) else None
        total = 0.0
        discount_total = 0.0
        order_lines = []
        for line in lines:
            item = StoreItem.query.filter_by(id=line.item_id).with_for_update().first()
            if not item or not item.is_active:
                raise ValidationError(f'Item {line.item.name} not found')
            if item.stock_quantity < line.quantity:
                raise ValidationError(f'Insufficient stock for {item.name}. Available: {item.stock_quantity}, '
                                      f'Requested: {line.quantity}')
            line_total = item.price * line.quantity
            line_discount = item.price * item.member_discount_percentage / 100 * line.quantity if member else 0.0
            total += line_total
            discount_total += line_discount
            order_lines.append((item, line.quantity, line_discount, line_total - line_discount))

        amount_due = total - discount_total
        promotion = None
        promo_discount = 0.0
        if data.promotional_code:
            promotion, promo_discount = promotion_discount(data.promotional_code, amount_due, member is not None)
            promotion.used_count += 1
            amount_due -= promo_discount

        points_used = 0
        if member and data.loyalty_points_to_redeem:
            if not user or user.id != member.id:
                raise AuthorizationError('Only the account holder can redeem loyalty points')
            balance = member.member_profile.loyalty_points or 0
            points_used = min(data.loyalty_points_to_redeem, balance, int(math.floor(amount_due)))

        order = StoreOrder(
            cart_id=cart.id,
            user_id=cart.user_id,
            order_number=generate_order_number(),
            customer_name=data.customer_name,
            customer_email=data.customer_email,
            customer_phone=data.customer_phone,
            total_amount=money(total),
            member_discount_total=money(discount_total),
            promotional_code=promotion.code if promotion else None,
            promotional_discount=promo_discount,
            loyalty_points_used=points_used,
            loyalty_discount=float(points_used),
            final_amount=money(amount_due - points_used),
            payment_method=data.payment_method,
            payment_status='pending',
            pickup_notes=data.pickup_notes,
        )
        db.session.add(order)
        db.session.flush()

        for item, quantity, line_discount, subtotal in order_lines:
            db.session.add(StoreOrderItem(order_id=order.id, item_id=item.id, quantity=quantity,
                                          price_at_time=item.price, member_discount_applied=money(line_discount),
                                          subtotal=money(subtotal)))
            record_stock_change(item, item.stock_quantity - quantity, 'stock_out', 'order', order.id,
                                f'Order {order.order_number}')
        add_status(order, 'pending', 'Order created successfully')

        if points_used:
            loyalty.redeem_points(member.id, points_used, 'store_redemption', reference_id=order.order_number)
        points_earned = 0
        if member:
            points_earned = int(order.final_amount // current_app.config['STORE_POINTS_PER_CURRENCY'])
            if points_earned:
                loyalty.award_points(member.id, points_earned, 'store_purchase', reference_id=order.order_number)

        for line in lines:
            db.session.delete(line)
        log_activity(data.customer_name, f'placed store order {order.order_number}.')

    return order_detail(order, points_earned=points_earned)


def order_detail(order, **extra):
    items = [line.to_dict(name=line.item.name) for line in order.items.order_by(StoreOrderItem.id).all()]
    history = [row.to_dict() for row in
               order.status_history.order_by(StoreOrderStatusHistory.created_at.desc(),
                                             StoreOrderStatusHistory.id.desc()).all()]
    return order.to_dict(items=items, status_history=history, **extra)


def update_stock(item, new_stock, notes, user):
    with atomic('Failed to update stock'):
        record_stock_change(item, new_stock, 'adjustment', notes=notes, created_by=user.id)
        log_activity(user.full_name, f"set stock of '{item.name}' to {new_stock}.")
    return item


def update_order_status(order, status, notes, user):
    if order.status == status:
        raise ValidationError(f'Order is already {status}', field='status')
    if order.status in ('cancelled', 'completed'):
        raise ValidationError(f'Cannot change a {order.status} order', field='status')
    with atomic('Failed to update order status'):
        if status == 'cancelled':
            for line in order.items.all():
                record_stock_change(line.item, line.item.stock_quantity + line.quantity, 'stock_in', 'order',
                                    order.id, f'Order {order.order_number} cancelled')
        add_status(order, status, notes)
        log_activity(user.full_name, f'marked order {order.order_number} as {status}.')
    return order


def update_payment_status(order, payment_status, user):
    with atomic('Failed to update payment status'):
        was_paid = order.payment_status == 'paid'
        order.payment_status = payment_status
        if payment_status == 'paid' and not was_paid:
            revenue.record_revenue(order.final_amount, order.payment_method, 'store_sales', user_id=order.user_id,
                                   reference_id=order.id, notes=f'Store order {order.order_number}')
        log_activity(user.full_name, f'set payment of order {order.order_number} to {payment_status}.')
    return order


def promotion_discount(code, amount, is_member):
    """Check ``code`` against an order amount; returns the promotion and the discount it gives."""
    promotion = StorePromotion.query.filter_by(code=code.strip().upper(), is_active=True).first()
    if (not promotion or (promotion.valid_until and promotion.valid_until <= utcnow())
            or promotion.used_count >= promotion.usage_limit):
        raise NotFoundError('Invalid or expired promotional code')
    if promotion.is_member_only and not is_member:
        raise ValidationError('This promotion is for members only', field='promotional_code')
    if amount < promotion.min_order_amount:
        raise ValidationError(f'Minimum order amount of {promotion.min_order_amount:.2f} required',
                              field='promotional_code')
    if promotion.discount_type == 'percentage':
        discount = amount * promotion.discount_value / 100
        if promotion.max_discount_amount:
            discount = min(discount, promotion.max_discount_amount)
    else:
        discount = promotion.discount_value
    return promotion, money(min(discount, amount))


def refund_order(order, data, user):
    """Refund part or all of a paid order. A full refund marks the payment as refunded."""
    if order.payment_status != 'paid':
        raise ValidationError('Only paid orders can be refunded')
    already = order.refund_amount or 0
    if money(already + data.refund_amount) > order.final_amount:
        raise ValidationError('Refund amount cannot exceed order amount', field='refund_amount')
    with atomic('Failed to process refund'):
        refund = StoreRefund(order_id=order.id, refund_amount=money(data.refund_amount),
                             refund_reason=data.refund_reason, refund_method=data.refund_method,
                             refund_status='approved', processed_by=user.id, admin_notes=data.admin_notes)
        db.session.add(refund)
        order.refund_amount = money(already + data.refund_amount)
        order.refund_reason = data.refund_reason
        order.refunded_at = utcnow()
        order.refunded_by = user.id
        if order.refund_amount >= order.final_amount:
            order.payment_status = 'refunded'
        revenue.record_revenue(-data.refund_amount, data.refund_method, 'store_sales', user_id=order.user_id,
                               reference_id=order.id, notes=f'Store order {order.order_number} refund')
        log_activity(user.full_name, f'refunded {money(data.refund_amount)} on order {order.order_number}.')
    return refund


def low_stock_items():
    items = (StoreItem.query.filter(StoreItem.is_active.is_(True),
                                    StoreItem.stock_quantity <= StoreItem.low_stock_threshold)
             .order_by(StoreItem.stock_quantity.asc()).all())
    return [{'id': item.id, 'name': item.name, 'current_stock': item.stock_quantity,
             'threshold': item.low_stock_threshold} for item in items]


def sales_report(start_date=None, end_date=None):
    orders = StoreOrder.query.filter(StoreOrder.status != 'cancelled')
    if start_date:
        orders = orders.filter(StoreOrder.created_at >= day_bounds(start_date)[0])
    if end_date:
        orders = orders.filter(StoreOrder.created_at < day_bounds(end_date)[1])
    orders = orders.all()

    by_day = {}
    for order in orders:
        day = order.created_at.date().isoformat()
        entry = by_day.setdefault(day, {'period': day, 'revenue': 0.0, 'orders': 0})
        entry['revenue'] = money(entry['revenue'] + order.final_amount)
        entry['orders'] += 1

    order_ids = [order.id for order in orders]
    top = []
    if order_ids:
        rows = (db.session.query(StoreItem.id, StoreItem.name, func.sum(StoreOrderItem.quantity),
                                 func.sum(StoreOrderItem.subtotal))
                .join(StoreOrderItem, StoreOrderItem.item_id == StoreItem.id)
                .filter(StoreOrderItem.order_id.in_(order_ids))
                .group_by(StoreItem.id, StoreItem.name)
                .order_by(func.sum(StoreOrderItem.quantity).desc()).limit(10).all())
        top = [{'id': item_id, 'name': name, 'quantity_sold': int(quantity or 0), 'revenue': money(amount)}
               for item_id, name, quantity, amount in rows]

    total_revenue = money(sum(order.final_amount for order in orders))
    return {
        'total_revenue': total_revenue,
        'total_orders': len(orders),
        'average_order_value': money(total_revenue / len(orders)) if orders else 0,
        'unique_customers': len({order.customer_email for order in orders}),
        'loyalty_points_used': sum(order.loyalty_points_used or 0 for order in orders),
        'top_selling_products': top,
        'revenue_by_period': sorted(by_day.values(), key=lambda row: row['period'], reverse=True),
        'low_stock_items': low_stock_items(),
    }
