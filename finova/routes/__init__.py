from .admin import admin_bp
from .checkin import checkin_bp
from .facilities import facilities_bp
from .frontdesk import frontdesk_bp
from .health import health_bp
from .meal_plan_templates import meal_plan_templates_bp
from .members import members_bp
from .monthly_plans import admin_monthly_plans_bp, monthly_plans_bp
from .nutritionists import nutritionists_bp
from .slots import slot_assignments_bp, slot_generation_bp
from .store import store_bp
from .subscriptions import member_plans_bp, trainer_subscriptions_bp
from .trainers import trainers_bp
from .users import users_bp

BLUEPRINTS = (
    (users_bp, '/api/users'),
    (admin_monthly_plans_bp, '/api/admin/monthly-plans'),
    (admin_bp, '/api/admin'),
    (members_bp, '/api/members'),
    (trainers_bp, '/api/trainers'),
    (nutritionists_bp, '/api/nutritionists'),
    (meal_plan_templates_bp, '/api/meal-plan-templates'),
    (monthly_plans_bp, '/api/monthly-plans'),
    (member_plans_bp, '/api/member-monthly-plans'),
    (trainer_subscriptions_bp, '/api/trainer-subscriptions'),
    (slot_generation_bp, '/api/slot-generation'),
    (slot_assignments_bp, '/api/slot-assignments'),
    (facilities_bp, '/api/facilities'),
    (store_bp, '/api/store'),
    (checkin_bp, '/api/checkin'),
    (frontdesk_bp, '/api/frontdesk'),
    (health_bp, '/api'),
)


def register_blueprints(app):
    for blueprint, prefix in BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=prefix)
