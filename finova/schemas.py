"""
Request body models.

Each endpoint that takes a JSON body parses it into one of these models via
``finova.validation.parse_body``; a failing field becomes a 400 naming it.
"""
import datetime
import re
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import (AfterValidator, BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, PositiveInt,
                      field_validator, model_validator)

PHONE_PATTERN = re.compile(r'^\+?[1-9]\d{7,15}$')
NAME_PATTERN = re.compile(r'^[a-zA-Z\s]+$')

Role = Literal['public', 'member', 'trainer', 'nutritionist', 'admin', 'front_desk']
PaymentMethod = Literal['cash', 'credit_card', 'debit_card', 'online_payment']


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _lower(value):
    return value.lower()


# email-validator checks the syntax, stored addresses are lower-cased
Email = Annotated[EmailStr, BeforeValidator(_strip), AfterValidator(_lower)]


def _naive_utc(value):
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value


UtcDateTime = Annotated[datetime.datetime, AfterValidator(_naive_utc)]


class RequestModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


# ----------------- USERS -----------------
class RegisterRequest(RequestModel):
    email: Email
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: Role = 'member'
    phone: Optional[str] = None
    date_of_birth: Optional[datetime.date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None


class LoginRequest(RequestModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def lower_email(cls, value):
        return value.lower()


class ProfileUpdate(RequestModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None


class UserStatusUpdate(RequestModel):
    is_active: bool


class MembershipPlanCreate(RequestModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    price: float = Field(ge=0)
    duration_months: PositiveInt = 1
    is_active: bool = True


class MembershipPlanUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    duration_months: Optional[PositiveInt] = None
    is_active: Optional[bool] = None


# ----------------- MEMBER PORTAL -----------------
class TrainingRequestCreate(RequestModel):
    trainer_id: PositiveInt
    request_type: str = Field(min_length=1, max_length=50)
    preferred_date: Optional[datetime.date] = None
    preferred_time: Optional[datetime.time] = None
    message: Optional[str] = None


class DietPlanRequestCreate(RequestModel):
    nutritionist_id: PositiveInt
    fitness_goal: str = Field(min_length=1, max_length=100)
    current_weight: float = Field(gt=0)
    target_weight: float = Field(gt=0)
    monthly_budget: Optional[float] = Field(None, ge=0)
    dietary_restrictions: Optional[str] = None
    additional_notes: Optional[str] = None


# ----------------- TRAINER PORTAL -----------------
class ScheduleEntry(RequestModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: datetime.time
    end_time: datetime.time
    is_available: bool = True

    @model_validator(mode='after')
    def check_times(self):
        if self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time')
        return self


class ScheduleUpdate(RequestModel):
    schedules: List[ScheduleEntry]


class TrainingRequestDecision(RequestModel):
    status: Literal['approved', 'rejected']
    response: Optional[str] = None


class SessionUpdate(RequestModel):
    status: Optional[Literal['scheduled', 'completed', 'cancelled', 'no_show']] = None
    notes: Optional[str] = None


class TrainerProfileUpdate(RequestModel):
    bio: Optional[str] = None
    specialization: Optional[List[str]] = None
    certification: Optional[List[str]] = None
    experience_years: Optional[int] = Field(None, ge=0)
    hourly_rate: Optional[float] = Field(None, ge=0)


class SessionNoteSave(RequestModel):
    training_session_id: PositiveInt
    exercises_performed: Optional[str] = None
    sets_and_reps: Optional[List[Dict[str, Any]]] = None
    client_feedback: Optional[str] = None
    trainer_observations: Optional[str] = None
    next_session_goals: Optional[str] = None
    client_progress_notes: Optional[str] = None
    fitness_metrics: Optional[Dict[str, Any]] = None


# ----------------- NUTRITIONISTS -----------------
class DietPlanRequestUpdate(RequestModel):
    status: Optional[Literal['pending', 'in_progress', 'completed', 'rejected']] = None
    nutritionist_notes: Optional[str] = None
    meal_plan: Optional[str] = None
    preparation_time: Optional[str] = None


class TemplateFood(RequestModel):
    food_name: str = Field(min_length=1, max_length=100)
    quantity: float = Field(0, ge=0)
    unit: str = 'g'
    calories_per_serving: Optional[float] = Field(None, ge=0)
    protein_per_serving: Optional[float] = Field(None, ge=0)
    carbs_per_serving: Optional[float] = Field(None, ge=0)
    fats_per_serving: Optional[float] = Field(None, ge=0)
    fiber_per_serving: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class TemplateMeal(RequestModel):
    meal_name: str = Field(min_length=1, max_length=100)
    meal_type: str = 'Breakfast'
    meal_order: PositiveInt = 1
    target_calories: Optional[float] = Field(None, ge=0)
    target_protein: Optional[float] = Field(None, ge=0)
    target_carbs: Optional[float] = Field(None, ge=0)
    target_fats: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    preparation_time: Optional[int] = Field(None, ge=0)
    cooking_time: Optional[int] = Field(None, ge=0)
    difficulty: str = 'Easy'
    foods: List[TemplateFood] = []


class MealPlanTemplateCreate(RequestModel):
    template_name: str = Field(min_length=1, max_length=150)
    template_type: Optional[str] = None
    target_calories: Optional[float] = Field(None, ge=0)
    target_protein: Optional[float] = Field(None, ge=0)
    target_carbs: Optional[float] = Field(None, ge=0)
    target_fats: Optional[float] = Field(None, ge=0)
    target_fiber: Optional[float] = Field(None, ge=0)
    duration_weeks: PositiveInt = 1
    difficulty_level: Optional[str] = None
    dietary_restrictions: List[str] = []
    fitness_goal: Optional[str] = None
    age_group: Optional[str] = None
    activity_level: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    tips_and_notes: Optional[str] = None
    is_public: bool = False
    meals: List[TemplateMeal] = []


class MealPlanTemplateUpdate(RequestModel):
    template_name: Optional[str] = Field(None, min_length=1, max_length=150)
    template_type: Optional[str] = None
    target_calories: Optional[float] = Field(None, ge=0)
    target_protein: Optional[float] = Field(None, ge=0)
    target_carbs: Optional[float] = Field(None, ge=0)
    target_fats: Optional[float] = Field(None, ge=0)
    target_fiber: Optional[float] = Field(None, ge=0)
    duration_weeks: Optional[PositiveInt] = None
    difficulty_level: Optional[str] = None
    dietary_restrictions: Optional[List[str]] = None
    fitness_goal: Optional[str] = None
    age_group: Optional[str] = None
    activity_level: Optional[str] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    tips_and_notes: Optional[str] = None
    is_public: Optional[bool] = None
    meals: Optional[List[TemplateMeal]] = None


# ----------------- MONTHLY PLANS -----------------
class MonthlyPlanCreate(RequestModel):
    plan_name: str = Field(min_length=1, max_length=100)
    monthly_price: float = Field(gt=0)
    sessions_per_month: PositiveInt
    session_duration: PositiveInt = 60
    session_type: Literal['personal', 'group'] = 'personal'
    max_subscribers: PositiveInt = 1
    description: Optional[str] = None


class MonthlyPlanUpdate(RequestModel):
    plan_name: Optional[str] = Field(None, min_length=1, max_length=100)
    monthly_price: Optional[float] = Field(None, gt=0)
    sessions_per_month: Optional[PositiveInt] = None
    session_duration: Optional[PositiveInt] = None
    session_type: Optional[Literal['personal', 'group']] = None
    max_subscribers: Optional[PositiveInt] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class PlanDecision(RequestModel):
    comments: Optional[str] = None


class SubscriptionRequest(RequestModel):
    plan_id: PositiveInt


class SubscriptionCancel(RequestModel):
    subscription_id: PositiveInt
    reason: Optional[str] = None


class SubscriptionApprove(RequestModel):
    subscription_id: PositiveInt
    notes: Optional[str] = None


class SubscriptionReject(RequestModel):
    subscription_id: PositiveInt
    reason: Optional[str] = None


# ----------------- SLOTS -----------------
class SlotBatchCreate(RequestModel):
    batch_name: str = Field(min_length=1, max_length=100)
    generation_start_date: datetime.date
    generation_end_date: datetime.date
    slot_duration: PositiveInt = 60
    break_duration: int = Field(15, ge=0)
    selected_days: List[int] = Field(min_length=1)
    daily_start_time: datetime.time
    daily_end_time: datetime.time
    notes: Optional[str] = None

    @field_validator('selected_days')
    @classmethod
    def check_days(cls, value):
        if any(day < 0 or day > 6 for day in value):
            raise ValueError('Selected days must be weekday numbers between 0 and 6')
        return sorted(set(value))

    @model_validator(mode='after')
    def check_ranges(self):
        if self.generation_start_date >= self.generation_end_date:
            raise ValueError('Start date must be before end date')
        if self.daily_start_time >= self.daily_end_time:
            raise ValueError('Daily start time must be before daily end time')
        return self


class SlotBatchUpdate(RequestModel):
    batch_name: Optional[str] = Field(None, min_length=1, max_length=100)
    notes: Optional[str] = None
    is_active: Optional[bool] = None
    slot_duration: Optional[PositiveInt] = None
    break_duration: Optional[int] = Field(None, ge=0)
    selected_days: Optional[List[int]] = Field(None, min_length=1)
    daily_start_time: Optional[datetime.time] = None
    daily_end_time: Optional[datetime.time] = None

    @field_validator('selected_days')
    @classmethod
    def check_days(cls, value):
        if value is not None and any(day < 0 or day > 6 for day in value):
            raise ValueError('Selected days must be weekday numbers between 0 and 6')
        return sorted(set(value)) if value is not None else value


class MonthlyPlanAssignment(RequestModel):
    slot_id: PositiveInt
    subscription_id: PositiveInt
    start_date: datetime.date
    end_date: datetime.date
    assignment_type: Literal['personal', 'group'] = 'personal'
    is_permanent: bool = True
    notes: Optional[str] = None

    @model_validator(mode='after')
    def check_range(self):
        if self.start_date > self.end_date:
            raise ValueError('Start date cannot be after end date')
        return self


class OneTimeAssignment(RequestModel):
    slot_id: PositiveInt
    client_id: PositiveInt
    session_date: datetime.date
    session_type: Literal['personal', 'group'] = 'personal'
    notes: Optional[str] = None


class AssignmentUpdate(RequestModel):
    status: Optional[Literal['active', 'completed', 'cancelled']] = None
    notes: Optional[str] = None
    end_date: Optional[datetime.date] = None


# ----------------- FACILITIES -----------------
class FacilityCreate(RequestModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    location: Optional[str] = None
    max_capacity: PositiveInt = 1
    default_duration_minutes: PositiveInt = 60
    base_price: float = Field(1000.0, ge=0)
    peak_hours_start: Optional[datetime.time] = None
    peak_hours_end: Optional[datetime.time] = None
    peak_price_multiplier: float = Field(1.0, ge=1)
    member_discount_percentage: float = Field(15.0, ge=0, le=100)
    cancellation_hours: int = Field(24, ge=0)
    refund_percentage: float = Field(100.0, ge=0, le=100)


class FacilityUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    location: Optional[str] = None
    max_capacity: Optional[PositiveInt] = None
    default_duration_minutes: Optional[PositiveInt] = None
    base_price: Optional[float] = Field(None, ge=0)
    peak_hours_start: Optional[datetime.time] = None
    peak_hours_end: Optional[datetime.time] = None
    peak_price_multiplier: Optional[float] = Field(None, ge=1)
    member_discount_percentage: Optional[float] = Field(None, ge=0, le=100)
    cancellation_hours: Optional[int] = Field(None, ge=0)
    refund_percentage: Optional[float] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None


class FacilitySlotGeneration(RequestModel):
    available_days: List[int] = Field(min_length=1)
    opening_time: datetime.time
    closing_time: datetime.time
    duration: PositiveInt = 60
    generation_period: PositiveInt = 1
    period_type: Literal['days', 'weeks', 'months'] = 'weeks'
    start_date: Optional[datetime.date] = None

    @field_validator('available_days')
    @classmethod
    def check_days(cls, value):
        if any(day < 0 or day > 6 for day in value):
            raise ValueError('Available days must be weekday numbers between 0 and 6')
        return sorted(set(value))

    @model_validator(mode='after')
    def check_hours(self):
        if self.opening_time >= self.closing_time:
            raise ValueError('Opening time must be before closing time')
        return self


class FacilityBookingCreate(RequestModel):
    slot_id: PositiveInt
    notes: Optional[str] = None


class FacilityBookingCancel(RequestModel):
    cancellation_reason: Optional[str] = None


class WaitlistCreate(RequestModel):
    facility_id: PositiveInt
    preferred_date: datetime.date
    preferred_start_time: Optional[datetime.time] = None
    preferred_end_time: Optional[datetime.time] = None


# ----------------- STORE -----------------
class CategoryCreate(RequestModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: bool = True


class CategoryUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class ItemCreate(RequestModel):
    category_id: PositiveInt
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    price: float = Field(ge=0)
    member_discount_percentage: float = Field(0.0, ge=0, le=100)
    stock_quantity: int = Field(0, ge=0)
    low_stock_threshold: int = Field(5, ge=0)
    image_url: Optional[str] = None


class ItemUpdate(RequestModel):
    category_id: Optional[PositiveInt] = None
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    member_discount_percentage: Optional[float] = Field(None, ge=0, le=100)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class StockUpdate(RequestModel):
    stock_quantity: int = Field(ge=0)
    notes: Optional[str] = None


class ReviewCreate(RequestModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    reviewer_name: Optional[str] = None


class CartCreate(RequestModel):
    user_id: Optional[PositiveInt] = None
    guest_email: Optional[Email] = None
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None

    @model_validator(mode='after')
    def check_owner(self):
        if self.user_id is None and not (self.guest_email and self.guest_name):
            raise ValueError('Either user_id or guest_email and guest_name are required')
        return self


class CartItemAdd(RequestModel):
    cart_id: PositiveInt
    item_id: PositiveInt
    quantity: PositiveInt = 1


class CartItemUpdate(RequestModel):
    quantity: int = Field(ge=0)


class CheckoutRequest(RequestModel):
    cart_id: PositiveInt
    customer_name: str = Field(min_length=1, max_length=200)
    customer_email: Email
    customer_phone: Optional[str] = None
    payment_method: PaymentMethod = 'cash'
    pickup_notes: Optional[str] = None
    loyalty_points_to_redeem: int = Field(0, ge=0)
    promotional_code: Optional[str] = Field(None, max_length=50)


class OrderStatusUpdate(RequestModel):
    status: Literal['pending', 'confirmed', 'ready', 'completed', 'cancelled']
    notes: Optional[str] = None


class PaymentStatusUpdate(RequestModel):
    payment_status: Literal['pending', 'paid', 'refunded', 'failed']


class WishlistAdd(RequestModel):
    item_id: PositiveInt


class PromotionCreate(RequestModel):
    code: str = Field(min_length=3, max_length=50)
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    discount_type: Literal['percentage', 'fixed']
    discount_value: float = Field(gt=0)
    min_order_amount: float = Field(0.0, ge=0)
    max_discount_amount: Optional[float] = Field(None, gt=0)
    usage_limit: PositiveInt = 1
    is_member_only: bool = False
    valid_until: Optional[UtcDateTime] = None

    @field_validator('code')
    @classmethod
    def upper_code(cls, value):
        return value.upper()

    @model_validator(mode='after')
    def check_percentage(self):
        if self.discount_type == 'percentage' and self.discount_value > 100:
            raise ValueError('Percentage discount cannot exceed 100')
        return self


class PromotionUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    discount_value: Optional[float] = Field(None, gt=0)
    min_order_amount: Optional[float] = Field(None, ge=0)
    max_discount_amount: Optional[float] = Field(None, gt=0)
    usage_limit: Optional[PositiveInt] = None
    is_member_only: Optional[bool] = None
    is_active: Optional[bool] = None
    valid_until: Optional[UtcDateTime] = None


class PromoCodeCheck(RequestModel):
    code: str = Field(min_length=1, max_length=50)
    cart_total: float = Field(ge=0)


class RefundRequest(RequestModel):
    refund_amount: float = Field(gt=0)
    refund_reason: str = Field(min_length=1)
    refund_method: PaymentMethod
    admin_notes: Optional[str] = None


# ----------------- CHECK-IN -----------------
class CheckInRequest(RequestModel):
    user_id: PositiveInt
    check_in_time: Optional[UtcDateTime] = None
    check_in_type: str = Field('manual', min_length=1, max_length=20)


# ----------------- FRONT DESK -----------------
class FrontDeskMemberCreate(RequestModel):
    first_name: str
    last_name: str
    email: Email
    phone: str
    membership_plan_id: PositiveInt
    payment_method: PaymentMethod
    payment_confirmed: bool
    date_of_birth: Optional[datetime.date] = None
    gender: Optional[Literal['male', 'female', 'other']] = None
    address: Optional[str] = Field(None, max_length=255)
    emergency_contact: Optional[str] = Field(None, max_length=255)

    @field_validator('first_name', 'last_name')
    @classmethod
    def check_name(cls, value, info):
        label = info.field_name.replace('_', ' ').capitalize()
        if not 2 <= len(value) <= 50:
            raise ValueError(f'{label} must be between 2 and 50 characters')
        if not NAME_PATTERN.match(value):
            raise ValueError(f'{label} can only contain letters and spaces')
        return value

    @field_validator('phone')
    @classmethod
    def check_phone(cls, value):
        if not PHONE_PATTERN.match(value):
            raise ValueError('Please provide a valid phone number (minimum 8 digits)')
        return value

    @field_validator('payment_confirmed')
    @classmethod
    def check_payment(cls, value):
        if not value:
            raise ValueError('Payment must be confirmed before creating member')
        return value

    @field_validator('gender', mode='before')
    @classmethod
    def blank_gender(cls, value):
        return value or None

    @field_validator('date_of_birth', mode='before')
    @classmethod
    def blank_birth_date(cls, value):
        return value or None

    @field_validator('date_of_birth')
    @classmethod
    def check_age(cls, value):
        if value is None:
            return value
        today = datetime.date.today()
        age = today.year - value.year - ((today.month, today.day) < (value.month, value.day))
        if age < 13 or age > 100:
            raise ValueError('Age must be between 13 and 100 years')
        return value
