from .extensions import db
from .utils import serialize, utcnow


class SerializerMixin:
    hidden_fields = ()

    def to_dict(self, **extra):
        data = {c.name: serialize(getattr(self, c.name)) for c in self.__table__.columns
                if c.name not in self.hidden_fields}
        data.update({k: serialize(v) for k, v in extra.items()})
        return data


# ----------------- USERS & PROFILES -----------------
ROLES = ('public', 'member', 'trainer', 'nutritionist', 'admin', 'front_desk')


class User(SerializerMixin, db.Model):
    __tablename__ = 'users'
    hidden_fields = ('password_hash',)
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='member')
    phone = db.Column(db.String(20))
    date_of_birth = db.Column(db.Date)
    gender = db.Column(db.String(20))
    address = db.Column(db.Text)
    emergency_contact = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    member_profile = db.relationship('MemberProfile', backref='user', uselist=False, cascade='all, delete-orphan')
    trainer_profile = db.relationship('Trainer', backref='user', uselist=False, cascade='all, delete-orphan')

    __table_args__ = (db.CheckConstraint(f"role IN {ROLES}", name='ck_users_role'),)

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'

    def public_dict(self):
        return {'id': self.id, 'email': self.email, 'first_name': self.first_name,
                'last_name': self.last_name, 'role': self.role, 'is_active': self.is_active}


class MembershipPlan(SerializerMixin, db.Model):
    __tablename__ = 'membership_plans'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)
    price = db.Column(db.Float, nullable=False)
    duration_months = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (db.CheckConstraint('price >= 0', name='ck_membership_plans_price'),
                      db.CheckConstraint('duration_months > 0', name='ck_membership_plans_duration'))


class MemberProfile(SerializerMixin, db.Model):
    __tablename__ = 'member_profiles'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)
    current_plan_id = db.Column(db.Integer, db.ForeignKey('membership_plans.id'))
    membership_start_date = db.Column(db.Date)
    membership_end_date = db.Column(db.Date)
    subscription_status = db.Column(db.String(20), nullable=False, default='pending')
    loyalty_points = db.Column(db.Integer, nullable=False, default=0)
    fitness_goal = db.Column(db.String(100))
    current_weight = db.Column(db.Float)
    target_weight = db.Column(db.Float)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    plan = db.relationship('MembershipPlan')

    __table_args__ = (db.CheckConstraint('loyalty_points >= 0', name='ck_member_profiles_points'),)


class Trainer(SerializerMixin, db.Model):
    __tablename__ = 'trainers'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)
    specialization = db.Column(db.JSON, default=list)
    certification = db.Column(db.JSON, default=list)
    experience_years = db.Column(db.Integer, default=0)
    bio = db.Column(db.Text, default='')
    hourly_rate = db.Column(db.Float, default=0.0)
    rating = db.Column(db.Float, default=0.0)
    is_available = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    schedules = db.relationship('TrainerSchedule', backref='trainer', lazy='dynamic', cascade='all, delete-orphan')


class TrainerSchedule(SerializerMixin, db.Model):
    __tablename__ = 'trainer_schedules'
    id = db.Column(db.Integer, primary_key=True)
    trainer_id = db.Column(db.Integer, db.ForeignKey('trainers.id', ondelete='CASCADE'), nullable=False)
    day_of_week = db.Column(db.Integer, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    is_available = db.Column(db.Boolean, default=True)

    __table_args__ = (db.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_trainer_schedules_day'),)


class TrainingRequest(SerializerMixin, db.Model):
    __tablename__ = 'training_requests'
    id = db.Column(db.Integer, primary_key=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    trainer_id = db.Column(db.Integer, db.ForeignKey('trainers.id', ondelete='CASCADE'), nullable=False)
    request_type = db.Column(db.String(50), nullable=False)
    preferred_date = db.Column(db.Date)
    preferred_time = db.Column(db.Time)
    message = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='pending')
    trainer_response = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    requester = db.relationship('User')


class TrainingSession(SerializerMixin, db.Model):
    __tablename__ = 'training_sessions'
    id = db.Column(db.Integer, primary_key=True)
    trainer_id = db.Column(db.Integer, db.ForeignKey('trainers.id', ondelete='CASCADE'), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    session_date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    session_type = db.Column(db.String(30), default='personal')
    status = db.Column(db.String(20), nullable=False, default='scheduled')
    notes = db.Column(db.Text)
    price = db.Column(db.Float, default=0.0)
    created_at = db.Column(db.DateTime, default=utcnow)
    client = db.relationship('User')
    trainer = db.relationship('Trainer')


class SessionNote(SerializerMixin, db.Model):
    __tablename__ = 'session_notes'
    id = db.Column(db.Integer, primary_key=True)
    training_session_id = db.Column(db.Integer, db.ForeignKey('training_sessions.id', ondelete='CASCADE'),
                                    unique=True, nullable=False)
    trainer_id = db.Column(db.Integer, db.ForeignKey('trainers.id', ondelete='CASCADE'), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    exercises_performed = db.Column(db.Text)
    sets_and_reps = db.Column(db.JSON)
    client_feedback = db.Column(db.Text)
    trainer_observations = db.Column(db.Text)
    next_session_goals = db.Column(db.Text)
    client_progress_notes = db.Column(db.Text)
    fitness_metrics = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    session = db.relationship('TrainingSession')
    client = db.relationship('User')


class DietPlanRequest(SerializerMixin, db.Model):
    __tablename__ = 'diet_plan_requests'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    nutritionist_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    fitness_goal = db.Column(db.String(100), nullable=False)
    current_weight = db.Column(db.Float, nullable=False)
    target_weight = db.Column(db.Float, nullable=False)
    monthly_budget = db.Column(db.Float)
    dietary_restrictions = db.Column(db.Text)
    additional_notes = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='pending')
    nutritionist_notes = db.Column(db.Text)
    meal_plan = db.Column(db.Text)
    preparation_time = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    member = db.relationship('User', foreign_keys=[user_id])
    nutritionist = db.relationship('User', foreign_keys=[nutritionist_id])


class MealPlanTemplate(SerializerMixin, db.Model):
    __tablename__ = 'meal_plan_templates'
    id = db.Column(db.Integer, primary_key=True)
    nutritionist_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    template_name = db.Column(db.String(150), nullable=False)
    template_type = db.Column(db.String(50))
    target_calories = db.Column(db.Float)
    target_protein = db.Column(db.Float)
    target_carbs = db.Column(db.Float)
    target_fats = db.Column(db.Float)
    target_fiber = db.Column(db.Float)
    meal_count = db.Column(db.Integer, nullable=False, default=0)
    duration_weeks = db.Column(db.Integer, nullable=False, default=1)
    difficulty_level = db.Column(db.String(20))
    dietary_restrictions = db.Column(db.JSON, default=list)
    fitness_goal = db.Column(db.String(100))
    age_group = db.Column(db.String(50))
    activity_level = db.Column(db.String(50))
    description = db.Column(db.Text)
    instructions = db.Column(db.Text)
    tips_and_notes = db.Column(db.Text)
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    nutritionist = db.relationship('User')
    meals = db.relationship('MealPlanTemplateMeal', backref='template', lazy='dynamic',
                            cascade='all, delete-orphan')


class MealPlanTemplateMeal(SerializerMixin, db.Model):
    __tablename__ = 'meal_plan_template_meals'
    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(db.Integer, db.ForeignKey('meal_plan_templates.id', ondelete='CASCADE'), nullable=False)
    meal_name = db.Column(db.String(100), nullable=False)
    meal_type = db.Column(db.String(30), nullable=False, default='Breakfast')
    meal_order = db.Column(db.Integer, nullable=False, default=1)
    target_calories = db.Column(db.Float)
    target_protein = db.Column(db.Float)
    target_carbs = db.Column(db.Float)
    target_fats = db.Column(db.Float)
    description = db.Column(db.Text)
    preparation_time = db.Column(db.Integer)
    cooking_time = db.Column(db.Integer)
    difficulty = db.Column(db.String(20), default='Easy')
    # [{food_name, quantity, unit, calories_per_serving, ...}]
    foods = db.Column(db.JSON, default=list)


# ----------------- MONTHLY PLANS & SLOTS -----------------
class TrainerMonthlyPlan(SerializerMixin, db.Model):
    __tablename__ = 'trainer_monthly_plans'
    id = db.Column(db.Integer, primary_key=True)
    trainer_id = db.Column(db.Integer, db.ForeignKey('trainers.id', ondelete='CASCADE'), nullable=False)
    plan_name = db.Column(db.String(100), nullable=False)
    monthly_price = db.Column(db.Float, nullable=False)
    sessions_per_month = db.Column(db.Integer, nullable=False)
    session_duration = db.Column(db.Integer, nullable=False, default=60)
    session_type = db.Column(db.String(20), nullable=False, default='personal')
    max_subscribers = db.Column(db.Integer, nullable=False, default=1)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    requires_admin_approval = db.Column(db.Boolean, nullable=False, default=True)
    # None = pending, True = approved, False = rejected
    admin_approved = db.Column(db.Boolean)
    admin_approval_date = db.Column(db.DateTime)
    admin_approval_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    trainer = db.relationship('Trainer')
    subscriptions = db.relationship('MonthlyPlanSubscription', backref='plan', lazy='dynamic')

    __table_args__ = (
        db.UniqueConstraint('trainer_id', 'plan_name', name='uq_trainer_monthly_plans_name'),
        db.CheckConstraint("session_type IN ('personal', 'group')", name='ck_trainer_monthly_plans_type'),
        db.CheckConstraint('monthly_price > 0', name='ck_trainer_monthly_plans_price'),
        db.CheckConstraint('max_subscribers >= 1', name='ck_trainer_monthly_plans_capacity'),
    )

    @property
    def approval_status(self):
        if self.admin_approved is None:
            return 'pending'
        return 'approved' if self.admin_approved else 'rejected'

    def active_subscriber_count(self):
        return self.subscriptions.filter_by(status='active').count()


class MonthlyPlanSubscription(SerializerMixin, db.Model):
    __tablename__ = 'monthly_plan_subscriptions'
    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    trainer_id = db.Column(db.Integer, db.ForeignKey('trainers.id', ondelete='CASCADE'), nullable=False)
    plan_id = db.Column(db.Integer, db.ForeignKey('trainer_monthly_plans.id', ondelete='CASCADE'), nullable=False)
    subscription_start_date = db.Column(db.Date, nullable=False)
    subscription_end_date = db.Column(db.Date, nullable=False)
    auto_renewal = db.Column(db.Boolean, default=False)
    status = db.Column(db.String(20), nullable=False, default='pending')
    sessions_remaining = db.Column(db.Integer, default=0)
    total_paid = db.Column(db.Float, default=0.0)
    payment_date = db.Column(db.DateTime)
    trainer_approval_date = db.Column(db.DateTime)
    trainer_approval_notes = db.Column(db.Text)
    rejection_reason = db.Column(db.Text)
    cancellation_date = db.Column(db.DateTime)
    cancellation_reason = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    member = db.relationship('User')
    trainer = db.relationship('Trainer')

    __table_args__ = (db.CheckConstraint(
        "status IN ('pending', 'active', 'rejected', 'cancelled', 'expired')",
        name='ck_monthly_plan_subscriptions_status'),)


class SlotGenerationBatch(SerializerMixin, db.Model):
    __tablename__ = 'slot_generation_batches'
    id = db.Column(db.Integer, primary_key=True)
    trainer_id = db.Column(db.Integer, db.ForeignKey('trainers.id', ondelete='CASCADE'), nullable=False)
    batch_name = db.Column(db.String(100), nullable=False)
    generation_start_date = db.Column(db.Date, nullable=False)
    generation_end_date = db.Column(db.Date, nullable=False)
    slot_duration = db.Column(db.Integer, nullable=False, default=60)
    break_duration = db.Column(db.Integer, nullable=False, default=15)
    selected_days = db.Column(db.JSON, nullable=False, default=list)
    daily_start_time = db.Column(db.Time, nullable=False)
    daily_end_time = db.Column(db.Time, nullable=False)
    notes = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    total_slots_generated = db.Column(db.Integer, nullable=False, default=0)
    generation_date = db.Column(db.DateTime, default=utcnow)
    slots = db.relationship('TrainerMasterSlot', backref='batch', lazy='dynamic', cascade='all, delete-orphan')

    __table_args__ = (db.UniqueConstraint('trainer_id', 'batch_name', name='uq_slot_generation_batches_name'),)


class TrainerMasterSlot(SerializerMixin, db.Model):
    __tablename__ = 'trainer_master_slots'
    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('slot_generation_batches.id', ondelete='CASCADE'), nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    slot_duration = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    assignments = db.relationship('SlotAssignment', backref='slot', lazy='dynamic', cascade='all, delete-orphan')


class SlotAssignment(SerializerMixin, db.Model):
    __tablename__ = 'slot_assignments'
    id = db.Column(db.Integer, primary_key=True)
    slot_id = db.Column(db.Integer, db.ForeignKey('trainer_master_slots.id', ondelete='CASCADE'), nullable=False)
    subscription_id = db.Column(db.Integer, db.ForeignKey('monthly_plan_subscriptions.id', ondelete='CASCADE'))
    assigned_member_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'))
    assignment_type = db.Column(db.String(20), nullable=False, default='personal')
    assignment_start_date = db.Column(db.Date, nullable=False)
    assignment_end_date = db.Column(db.Date, nullable=False)
    is_permanent = db.Column(db.Boolean, default=True)
    assignment_reason = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='active')
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    subscription = db.relationship('MonthlyPlanSubscription')
    assigned_member = db.relationship('User')

    __table_args__ = (db.CheckConstraint('assignment_start_date <= assignment_end_date',
                                         name='ck_slot_assignments_range'),)


# ----------------- FACILITIES -----------------
class Facility(SerializerMixin, db.Model):
    __tablename__ = 'facilities'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)
    location = db.Column(db.String(255))
    max_capacity = db.Column(db.Integer, nullable=False, default=1)
    default_duration_minutes = db.Column(db.Integer, nullable=False, default=60)
    base_price = db.Column(db.Float, nullable=False, default=1000.0)
    peak_hours_start = db.Column(db.Time)
    peak_hours_end = db.Column(db.Time)
    peak_price_multiplier = db.Column(db.Float, default=1.0)
    member_discount_percentage = db.Column(db.Float, default=15.0)
    cancellation_hours = db.Column(db.Integer, default=24)
    refund_percentage = db.Column(db.Float, default=100.0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    slots = db.relationship('FacilitySlot', backref='facility', lazy='dynamic', cascade='all, delete-orphan')

    __table_args__ = (db.CheckConstraint('max_capacity >= 1', name='ck_facilities_capacity'),)


class FacilitySlot(SerializerMixin, db.Model):
    __tablename__ = 'facility_slots'
    id = db.Column(db.Integer, primary_key=True)
    facility_id = db.Column(db.Integer, db.ForeignKey('facilities.id', ondelete='CASCADE'), nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='available')
    base_price = db.Column(db.Float, nullable=False)
    final_price = db.Column(db.Float, nullable=False)
    slot_type = db.Column(db.String(20), nullable=False, default='off_peak')
    max_capacity = db.Column(db.Integer, nullable=False, default=1)
    current_bookings = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (db.CheckConstraint('current_bookings >= 0', name='ck_facility_slots_bookings'),)


class FacilityBooking(SerializerMixin, db.Model):
    __tablename__ = 'facility_bookings'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    slot_id = db.Column(db.Integer, db.ForeignKey('facility_slots.id', ondelete='SET NULL'))
    facility_id = db.Column(db.Integer, db.ForeignKey('facilities.id', ondelete='CASCADE'), nullable=False)
    booking_date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='confirmed')
    price_paid = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text)
    cancellation_reason = db.Column(db.Text)
    cancelled_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)
    facility = db.relationship('Facility')
    user = db.relationship('User')


class FacilityWaitlist(SerializerMixin, db.Model):
    __tablename__ = 'facility_waitlist'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    facility_id = db.Column(db.Integer, db.ForeignKey('facilities.id', ondelete='CASCADE'), nullable=False)
    preferred_date = db.Column(db.Date, nullable=False)
    preferred_start_time = db.Column(db.Time)
    preferred_end_time = db.Column(db.Time)
    status = db.Column(db.String(20), nullable=False, default='waiting')
    priority = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    facility = db.relationship('Facility')
    user = db.relationship('User')


class FacilityAnalytics(SerializerMixin, db.Model):
    __tablename__ = 'facility_analytics'
    id = db.Column(db.Integer, primary_key=True)
    facility_id = db.Column(db.Integer, db.ForeignKey('facilities.id', ondelete='CASCADE'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    total_bookings = db.Column(db.Integer, nullable=False, default=0)
    total_revenue = db.Column(db.Float, nullable=False, default=0.0)
    peak_hour_bookings = db.Column(db.Integer, nullable=False, default=0)
    off_peak_bookings = db.Column(db.Integer, nullable=False, default=0)
    member_bookings = db.Column(db.Integer, nullable=False, default=0)
    non_member_bookings = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (db.UniqueConstraint('facility_id', 'date', name='uq_facility_analytics_day'),)


# ----------------- STORE -----------------
class StoreCategory(SerializerMixin, db.Model):
    __tablename__ = 'store_categories'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    items = db.relationship('StoreItem', backref='category', lazy='dynamic')


class StoreItem(SerializerMixin, db.Model):
    __tablename__ = 'store_items'
    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey('store_categories.id'), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    price = db.Column(db.Float, nullable=False)
    member_discount_percentage = db.Column(db.Float, nullable=False, default=0.0)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)
    image_url = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.CheckConstraint('price >= 0', name='ck_store_items_price'),
        db.CheckConstraint('stock_quantity >= 0', name='ck_store_items_stock'),
        db.CheckConstraint('member_discount_percentage BETWEEN 0 AND 100', name='ck_store_items_discount'),
    )


class StoreCart(SerializerMixin, db.Model):
    __tablename__ = 'store_carts'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), unique=True)
    guest_email = db.Column(db.String(255))
    guest_name = db.Column(db.String(200))
    guest_phone = db.Column(db.String(20))
    created_at = db.Column(db.DateTime, default=utcnow)
    user = db.relationship('User')
    items = db.relationship('StoreCartItem', backref='cart', lazy='dynamic', cascade='all, delete-orphan')


class StoreCartItem(SerializerMixin, db.Model):
    __tablename__ = 'store_cart_items'
    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey('store_carts.id', ondelete='CASCADE'), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey('store_items.id', ondelete='CASCADE'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_at_time = db.Column(db.Float, nullable=False)
    member_discount_applied = db.Column(db.Float, nullable=False, default=0.0)
    item = db.relationship('StoreItem')

    __table_args__ = (db.UniqueConstraint('cart_id', 'item_id', name='uq_store_cart_items_item'),
                      db.CheckConstraint('quantity > 0', name='ck_store_cart_items_quantity'))


class StoreOrder(SerializerMixin, db.Model):
    __tablename__ = 'store_orders'
    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey('store_carts.id', ondelete='SET NULL'))
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    order_number = db.Column(db.String(50), unique=True, nullable=False)
    customer_name = db.Column(db.String(200), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False, index=True)
    customer_phone = db.Column(db.String(20))
    total_amount = db.Column(db.Float, nullable=False)
    member_discount_total = db.Column(db.Float, nullable=False, default=0.0)
    loyalty_points_used = db.Column(db.Integer, nullable=False, default=0)
    promotional_code = db.Column(db.String(50))
    promotional_discount = db.Column(db.Float, nullable=False, default=0.0)
    loyalty_discount = db.Column(db.Float, nullable=False, default=0.0)
    final_amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(30), nullable=False)
    payment_status = db.Column(db.String(20), nullable=False, default='pending')
    status = db.Column(db.String(20), nullable=False, default='pending')
    pickup_notes = db.Column(db.Text)
    refund_amount = db.Column(db.Float, nullable=False, default=0.0)
    refund_reason = db.Column(db.Text)
    refunded_at = db.Column(db.DateTime)
    refunded_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    items = db.relationship('StoreOrderItem', backref='order', lazy='dynamic', cascade='all, delete-orphan')
    status_history = db.relationship('StoreOrderStatusHistory', backref='order', lazy='dynamic',
                                     cascade='all, delete-orphan')


class StoreOrderItem(SerializerMixin, db.Model):
    __tablename__ = 'store_order_items'
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('store_orders.id', ondelete='CASCADE'), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey('store_items.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_at_time = db.Column(db.Float, nullable=False)
    member_discount_applied = db.Column(db.Float, nullable=False, default=0.0)
    subtotal = db.Column(db.Float, nullable=False)
    item = db.relationship('StoreItem')


class StoreOrderStatusHistory(SerializerMixin, db.Model):
    __tablename__ = 'store_order_status_history'
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('store_orders.id', ondelete='CASCADE'), nullable=False)
    status = db.Column(db.String(20), nullable=False)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)


class StoreInventoryTransaction(SerializerMixin, db.Model):
    __tablename__ = 'store_inventory_transactions'
    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey('store_items.id', ondelete='CASCADE'), nullable=False)
    transaction_type = db.Column(db.String(20), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    reference_type = db.Column(db.String(30))
    reference_id = db.Column(db.Integer)
    notes = db.Column(db.Text)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    created_at = db.Column(db.DateTime, default=utcnow)


class StoreWishlist(SerializerMixin, db.Model):
    __tablename__ = 'store_wishlist'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey('store_items.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    item = db.relationship('StoreItem')

    __table_args__ = (db.UniqueConstraint('user_id', 'item_id', name='uq_store_wishlist_item'),)


class StoreReview(SerializerMixin, db.Model):
    __tablename__ = 'store_reviews'
    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey('store_items.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    reviewer_name = db.Column(db.String(200), nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (db.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_store_reviews_rating'),)


class StorePromotion(SerializerMixin, db.Model):
    __tablename__ = 'store_promotions'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    discount_type = db.Column(db.String(20), nullable=False)
    discount_value = db.Column(db.Float, nullable=False)
    min_order_amount = db.Column(db.Float, nullable=False, default=0.0)
    max_discount_amount = db.Column(db.Float)
    usage_limit = db.Column(db.Integer, nullable=False, default=1)
    used_count = db.Column(db.Integer, nullable=False, default=0)
    is_member_only = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    valid_until = db.Column(db.DateTime)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.CheckConstraint("discount_type IN ('percentage', 'fixed')", name='ck_store_promotions_type'),
        db.CheckConstraint('discount_value > 0', name='ck_store_promotions_value'),
    )


class StoreRefund(SerializerMixin, db.Model):
    __tablename__ = 'store_refunds'
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('store_orders.id', ondelete='CASCADE'), nullable=False)
    refund_amount = db.Column(db.Float, nullable=False)
    refund_reason = db.Column(db.Text, nullable=False)
    refund_method = db.Column(db.String(30), nullable=False)
    refund_status = db.Column(db.String(20), nullable=False, default='approved')
    processed_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    admin_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)


# ----------------- CHECK-INS & LOYALTY -----------------
class GymVisit(SerializerMixin, db.Model):
    __tablename__ = 'gym_visits'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    visit_date = db.Column(db.Date, nullable=False)
    check_in_time = db.Column(db.DateTime, nullable=False)
    check_in_type = db.Column(db.String(20), nullable=False, default='manual')
    consistency_week_start = db.Column(db.Date, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    user = db.relationship('User')


class ConsistencyAchievement(SerializerMixin, db.Model):
    __tablename__ = 'consistency_achievements'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    week_start_date = db.Column(db.Date, nullable=False)
    week_end_date = db.Column(db.Date, nullable=False)
    check_ins_count = db.Column(db.Integer, nullable=False, default=0)
    consistency_achieved = db.Column(db.Boolean, nullable=False, default=False)
    points_awarded = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (db.UniqueConstraint('user_id', 'week_start_date', name='uq_consistency_week'),)


class LoyaltyTransaction(SerializerMixin, db.Model):
    __tablename__ = 'loyalty_transactions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    points_change = db.Column(db.Integer, nullable=False)
    transaction_type = db.Column(db.String(10), nullable=False)
    description = db.Column(db.String(255))
    reference_id = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (db.CheckConstraint("transaction_type IN ('credit', 'debit')",
                                         name='ck_loyalty_transactions_type'),)


# ----------------- REVENUE & ACTIVITY -----------------
class GymRevenue(SerializerMixin, db.Model):
    __tablename__ = 'gym_revenue'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'))
    reference_id = db.Column(db.Integer)
    amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(30), nullable=False)
    revenue_source = db.Column(db.String(30), nullable=False, default='membership_fees')
    revenue_date = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)


class ActivityLog(SerializerMixin, db.Model):
    __tablename__ = 'activity_logs'
    id = db.Column(db.Integer, primary_key=True)
    user_name = db.Column(db.String(200), nullable=False)
    message = db.Column(db.String(255), nullable=False)
    timestamp = db.Column(db.DateTime, default=utcnow)


def log_activity(user_name, message):
    db.session.add(ActivityLog(user_name=user_name, message=message[:255]))
