from flask import Blueprint, g, request
from sqlalchemy import func, or_

from ..auth import optional_user, roles_required
from ..errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..extensions import atomic, db
from ..models import (StoreCart, StoreCategory, StoreItem, StoreOrder, StorePromotion, StoreReview, StoreWishlist,
                      log_activity)
from ..responses import created, ok
from ..schemas import (CartCreate, CartItemAdd, CartItemUpdate, CategoryCreate, CategoryUpdate, CheckoutRequest,
                       ItemCreate, ItemUpdate, OrderStatusUpdate, PaymentStatusUpdate, PromoCodeCheck, PromotionCreate,
                       PromotionUpdate, RefundRequest, ReviewCreate, StockUpdate, WishlistAdd)
from ..services import store as store_service
from ..validation import parse_body, parse_date, provided_fields, validate_date_range

store_bp = Blueprint('store', __name__)

STAFF_ROLES = ('admin', 'front_desk')


def _item(item_id, active_only=True):
    item = db.session.get(StoreItem, item_id)
    if not item or (active_only and not item.is_active):
        raise NotFoundError('Item not found')
    return item


def _category(category_id):
    category = db.session.get(StoreCategory, category_id)
    if not category:
        raise NotFoundError('Category not found')
    return category


def _order(order_id):
    order = db.session.get(StoreOrder, order_id)
    if not order:
        raise NotFoundError('Order not found')
    return order


def _cart_caller(owner_id):
    """Guest carts are open; a member's cart is served only to that member or to desk staff."""
    user = optional_user()
    if owner_id is None:
        return user
    if not user:
        raise AuthenticationError('Authentication required')
    if user.id != owner_id and user.role not in STAFF_ROLES:
        raise AuthorizationError('Access denied')
    return user


def _cart(cart_id):
    cart = db.session.get(StoreCart, cart_id)
    if not cart:
        raise NotFoundError('Cart not found')
    return cart, _cart_caller(cart.user_id)


def item_row(item):
    rating, reviews = (db.session.query(func.avg(StoreReview.rating), func.count(StoreReview.id))
                       .filter(StoreReview.item_id == item.id).one())
    return item.to_dict(category_name=item.category.name if item.category else None,
                        average_rating=round(float(rating), 1) if rating else None, review_count=reviews,
                        in_stock=item.stock_quantity > 0)


# ----------------- CATALOG -----------------
@store_bp.route('/categories', methods=['GET'])
def list_categories():
    categories = StoreCategory.query.filter_by(is_active=True).order_by(StoreCategory.name).all()
    return ok([category.to_dict() for category in categories])


@store_bp.route('/items', methods=['GET'])
def list_items():
    query = StoreItem.query.filter_by(is_active=True)
    category_id = request.args.get('category_id', type=int)
    if category_id:
        query = query.filter_by(category_id=category_id)
    search = (request.args.get('search') or '').strip()
    if search:
        pattern = f'%{search.lower()}%'
        query = query.filter(or_(func.lower(StoreItem.name).like(pattern),
                                 func.lower(StoreItem.description).like(pattern)))
    return ok([item_row(item) for item in query.order_by(StoreItem.name).all()])


@store_bp.route('/items/<int:item_id>/reviews', methods=['GET'])
def list_reviews(item_id):
    item = _item(item_id)
    reviews = StoreReview.query.filter_by(item_id=item.id).order_by(StoreReview.created_at.desc()).all()
    return ok([review.to_dict() for review in reviews], count=len(reviews))


@store_bp.route('/items/<int:item_id>/reviews', methods=['POST'])
def add_review(item_id):
    data = parse_body(ReviewCreate)
    item = _item(item_id)
    # Guests may review; a valid token attaches the review to the account
    user = optional_user()
    name = user.full_name if user else (data.reviewer_name or 'Anonymous')
    with atomic('Failed to add review'):
        review = StoreReview(item_id=item.id, user_id=user.id if user else None, reviewer_name=name,
                             rating=data.rating, comment=data.comment)
        db.session.add(review)
    return created(review.to_dict(), 'Review added successfully')


# ----------------- CART -----------------
@store_bp.route('/cart', methods=['POST'])
def create_cart():
    data = parse_body(CartCreate)
    _cart_caller(data.user_id)
    cart, is_new = store_service.create_or_get_cart(data)
    summary = store_service.cart_summary(cart)
    if is_new:
        return created(summary, 'Cart created')
    return ok(summary, 'Existing cart returned')


@store_bp.route('/cart/<int:cart_id>', methods=['GET'])
def get_cart(cart_id):
    cart, _ = _cart(cart_id)
    return ok(store_service.cart_summary(cart))


@store_bp.route('/cart/items', methods=['POST'])
def add_cart_item():
    data = parse_body(CartItemAdd)
    _cart(data.cart_id)
    cart = store_service.add_to_cart(data.cart_id, data.item_id, data.quantity)
    return ok(store_service.cart_summary(cart), 'Item added to cart')


@store_bp.route('/cart/<int:cart_id>/items/<int:item_id>', methods=['PUT'])
def update_cart_item(cart_id, item_id):
    data = parse_body(CartItemUpdate)
    _cart(cart_id)
    cart = store_service.update_cart_item(cart_id, item_id, data.quantity)
    return ok(store_service.cart_summary(cart), 'Cart updated')


# ----------------- ORDERS -----------------
@store_bp.route('/checkout', methods=['POST'])
def checkout():
    data = parse_body(CheckoutRequest)
    _, user = _cart(data.cart_id)
    order = store_service.checkout(data, user)
    return created(order, 'Order placed successfully')


@store_bp.route('/validate-promo-code', methods=['POST'])
def validate_promo_code():
    data = parse_body(PromoCodeCheck)
    user = optional_user()
    is_member = bool(user and user.role == 'member' and user.member_profile)
    promotion, discount = store_service.promotion_discount(data.code, data.cart_total, is_member)
    return ok({
        'id': promotion.id,
        'code': promotion.code,
        'name': promotion.name,
        'discount_type': promotion.discount_type,
        'discount_value': promotion.discount_value,
        'discount_amount': discount,
    }, 'Promotional code applied')


@store_bp.route('/orders/<order_number>', methods=['GET'])
def get_order(order_number):
    order = StoreOrder.query.filter_by(order_number=order_number).first()
    if not order:
        raise NotFoundError('Order not found')
    return ok(store_service.order_detail(order))


@store_bp.route('/member/orders', methods=['GET'])
@roles_required('member')
def member_orders():
    user = g.current_user
    orders = (StoreOrder.query.filter(or_(StoreOrder.user_id == user.id, StoreOrder.customer_email == user.email))
              .order_by(StoreOrder.created_at.desc(), StoreOrder.id.desc()).all())
    return ok([store_service.order_detail(order) for order in orders])


# ----------------- ADMIN -----------------
@store_bp.route('/categories', methods=['POST'])
@roles_required('admin')
def create_category():
    data = parse_body(CategoryCreate)
    if StoreCategory.query.filter_by(name=data.name).first():
        raise ConflictError('A category with this name already exists')
    with atomic('Failed to create category'):
        category = StoreCategory(**data.model_dump())
        db.session.add(category)
    return created(category.to_dict(), 'Category created successfully')


@store_bp.route('/categories/<int:category_id>', methods=['PUT'])
@roles_required('admin')
def update_category(category_id):
    data = parse_body(CategoryUpdate)
    category = _category(category_id)
    with atomic('Failed to update category'):
        for field, value in provided_fields(data).items():
            setattr(category, field, value)
    return ok(category.to_dict(), 'Category updated successfully')


@store_bp.route('/items', methods=['POST'])
@roles_required('admin')
def create_item():
    data = parse_body(ItemCreate)
    _category(data.category_id)
    user = g.current_user
    with atomic('Failed to create item'):
        fields = data.model_dump()
        stock = fields.pop('stock_quantity')
        item = StoreItem(stock_quantity=0, **fields)
        db.session.add(item)
        db.session.flush()
        if stock:
            store_service.record_stock_change(item, stock, 'stock_in', notes='Initial stock', created_by=user.id)
        log_activity(user.full_name, f"added store item '{item.name}'.")
    return created(item_row(item), 'Item created successfully')


@store_bp.route('/items/<int:item_id>', methods=['PUT'])
@roles_required('admin')
def update_item(item_id):
    data = parse_body(ItemUpdate)
    item = _item(item_id, active_only=False)
    changes = provided_fields(data)
    if 'category_id' in changes:
        _category(changes['category_id'])
    with atomic('Failed to update item'):
        for field, value in changes.items():
            setattr(item, field, value)
    return ok(item_row(item), 'Item updated successfully')


@store_bp.route('/items/<int:item_id>/stock', methods=['PUT'])
@roles_required('admin')
def update_stock(item_id):
    data = parse_body(StockUpdate)
    item = store_service.update_stock(_item(item_id, active_only=False), data.stock_quantity, data.notes,
                                      g.current_user)
    return ok(item_row(item), 'Stock updated successfully')


@store_bp.route('/admin/items/<int:item_id>', methods=['DELETE'])
@roles_required('admin')
def delete_item(item_id):
    item = _item(item_id, active_only=False)
    with atomic('Failed to delete item'):
        item.is_active = False
        log_activity(g.current_user.full_name, f"removed store item '{item.name}'.")
    return ok(message='Item deleted successfully')


@store_bp.route('/admin/orders', methods=['GET'])
@roles_required('admin')
def admin_orders():
    query = StoreOrder.query
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)
    orders = query.order_by(StoreOrder.created_at.desc(), StoreOrder.id.desc()).all()
    return ok([order.to_dict(item_count=order.items.count()) for order in orders])


@store_bp.route('/admin/orders/<int:order_id>/status', methods=['PUT'])
@roles_required('admin')
def admin_order_status(order_id):
    data = parse_body(OrderStatusUpdate)
    order = store_service.update_order_status(_order(order_id), data.status, data.notes, g.current_user)
    return ok(store_service.order_detail(order), 'Order status updated')


@store_bp.route('/admin/orders/<int:order_id>/payment', methods=['PUT'])
@roles_required('admin')
def admin_order_payment(order_id):
    data = parse_body(PaymentStatusUpdate)
    order = store_service.update_payment_status(_order(order_id), data.payment_status, g.current_user)
    return ok(order.to_dict(), 'Payment status updated')


@store_bp.route('/admin/orders/<int:order_id>/refund', methods=['POST'])
@roles_required('admin')
def admin_order_refund(order_id):
    data = parse_body(RefundRequest)
    order = _order(order_id)
    refund = store_service.refund_order(order, data, g.current_user)
    return ok({'refund': refund.to_dict(), 'order': order.to_dict()}, 'Refund processed successfully')


@store_bp.route('/admin/promotions', methods=['GET'])
@roles_required('admin')
def list_promotions():
    promotions = StorePromotion.query.order_by(StorePromotion.created_at.desc(), StorePromotion.id.desc()).all()
    return ok([promotion.to_dict() for promotion in promotions])


@store_bp.route('/admin/promotions', methods=['POST'])
@roles_required('admin')
def create_promotion():
    data = parse_body(PromotionCreate)
    if StorePromotion.query.filter_by(code=data.code).first():
        raise ConflictError('Promotion code already exists')
    user = g.current_user
    with atomic('Failed to create promotion'):
        promotion = StorePromotion(created_by=user.id, **data.model_dump())
        db.session.add(promotion)
        log_activity(user.full_name, f"created promotion '{promotion.code}'.")
    return created(promotion.to_dict(), 'Promotion created successfully')


@store_bp.route('/admin/promotions/<int:promotion_id>', methods=['PUT'])
@roles_required('admin')
def update_promotion(promotion_id):
    data = parse_body(PromotionUpdate)
    promotion = db.session.get(StorePromotion, promotion_id)
    if not promotion:
        raise NotFoundError('Promotion not found')
    changes = provided_fields(data)
    value = changes.get('discount_value', promotion.discount_value)
    if promotion.discount_type == 'percentage' and value > 100:
        raise ValidationError('Percentage discount cannot exceed 100', field='discount_value')
    with atomic('Failed to update promotion'):
        for field, new_value in changes.items():
            setattr(promotion, field, new_value)
    return ok(promotion.to_dict(), 'Promotion updated successfully')


@store_bp.route('/admin/alerts/low-stock', methods=['GET'])
@roles_required('admin')
def low_stock():
    return ok(store_service.low_stock_items())


@store_bp.route('/admin/reports/sales', methods=['GET'])
@roles_required('admin')
def sales_report():
    start = parse_date(request.args.get('start_date'), 'start_date')
    end = parse_date(request.args.get('end_date'), 'end_date')
    validate_date_range(start, end)
    return ok(store_service.sales_report(start, end))


# ----------------- WISHLIST -----------------
@store_bp.route('/member/wishlist', methods=['GET'])
@roles_required('member')
def wishlist():
    rows = (StoreWishlist.query.filter_by(user_id=g.current_user.id)
            .order_by(StoreWishlist.created_at.desc()).all())
    return ok([item_row(row.item) for row in rows if row.item.is_active])


@store_bp.route('/member/wishlist', methods=['POST'])
@roles_required('member')
def add_to_wishlist():
    data = parse_body(WishlistAdd)
    item = _item(data.item_id)
    user = g.current_user
    if StoreWishlist.query.filter_by(user_id=user.id, item_id=item.id).first():
        raise ConflictError('Item is already in your wishlist')
    with atomic('Failed to add to wishlist'):
        db.session.add(StoreWishlist(user_id=user.id, item_id=item.id))
    return created(item_row(item), 'Item added to wishlist')


@store_bp.route('/member/wishlist/<int:item_id>', methods=['DELETE'])
@roles_required('member')
def remove_from_wishlist(item_id):
    row = StoreWishlist.query.filter_by(user_id=g.current_user.id, item_id=item_id).first()
    if not row:
        raise NotFoundError('Item not found in wishlist')
    with atomic('Failed to remove from wishlist'):
        db.session.delete(row)
    return ok(message='Item removed from wishlist')
