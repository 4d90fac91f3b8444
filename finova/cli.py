import datetime

import click

from .extensions import bcrypt, db
from .models import (Facility, MemberProfile, MembershipPlan, StoreCategory, StoreItem, StorePromotion, Trainer,
                     TrainerSchedule, User, log_activity)
from .utils import add_months, today

PLANS = [
    {'name': 'Basic', 'description': 'Gym floor access during staffed hours.', 'price': 3000.0, 'duration_months': 1},
    {'name': 'Premium', 'description': 'Full access plus group classes and a monthly trainer consultation.',
     'price': 8000.0, 'duration_months': 3},
    {'name': 'Elite', 'description': 'Unlimited access, all classes and priority facility booking.',
     'price': 25000.0, 'duration_months': 12},
]

STORE = {
    'Supplements': [
        {'name': 'Whey Protein 2lb', 'price': 6500.0, 'member_discount_percentage': 10, 'stock_quantity': 25},
        {'name': 'Creatine Monohydrate', 'price': 3500.0, 'member_discount_percentage': 10, 'stock_quantity': 4},
    ],
    'Apparel': [
        {'name': 'Finova Training Tee', 'price': 1800.0, 'member_discount_percentage': 15, 'stock_quantity': 40},
    ],
    'Accessories': [
        {'name': 'Shaker Bottle', 'price': 900.0, 'member_discount_percentage': 5, 'stock_quantity': 60},
        {'name': 'Lifting Straps', 'price': 1200.0, 'member_discount_percentage': 5, 'stock_quantity': 15},
    ],
}

MEMBERS = [
    {'first_name': 'John', 'last_name': 'Doe', 'email': 'john@example.com', 'goal': 'Weight Loss', 'plan': 'Basic'},
    {'first_name': 'Mara', 'last_name': 'Pinto', 'email': 'mara@example.com', 'goal': 'General Fitness',
     'plan': 'Premium'},
    {'first_name': 'Raj', 'last_name': 'Kumar', 'email': 'raj@example.com', 'goal': 'Weight Loss', 'plan': 'Basic'},
    {'first_name': 'Anita', 'last_name': 'Singh', 'email': 'anita@example.com', 'goal': 'Bodybuilding',
     'plan': 'Elite'},
]


def _user(email, password, first_name, last_name, role):
    return User(email=email, password_hash=bcrypt.generate_password_hash(password).decode('utf-8'),
                first_name=first_name, last_name=last_name, role=role, is_active=True)


def seed():
    admin = _user('admin@finova.com', 'admin123', 'Admin', 'User', 'admin')
    desk = _user('frontdesk@finova.com', 'frontdesk123', 'Front', 'Desk', 'front_desk')
    sara = _user('sara@finova.com', 'trainer123', 'Sara', 'Holmes', 'trainer')
    nora = _user('nora@finova.com', 'nutrition123', 'Nora', 'Malik', 'nutritionist')
    db.session.add_all([admin, desk, sara, nora])

    plans = {p['name']: MembershipPlan(**p) for p in PLANS}
    db.session.add_all(plans.values())
    db.session.flush()

    trainer = Trainer(user_id=sara.id, specialization=['Strength', 'HIIT'], certification=['ACE-CPT'],
                      experience_years=6, bio='Strength coach focused on sustainable progress.', hourly_rate=2500.0)
    db.session.add(trainer)
    db.session.flush()
    for day in range(1, 6):
        db.session.add(TrainerSchedule(trainer_id=trainer.id, day_of_week=day, start_time=datetime.time(7, 0),
                                       end_time=datetime.time(15, 0)))

    start = today()
    for m in MEMBERS:
        member = _user(m['email'], 'member123', m['first_name'], m['last_name'], 'member')
        db.session.add(member)
        db.session.flush()
        plan = plans[m['plan']]
        db.session.add(MemberProfile(user_id=member.id, current_plan_id=plan.id, membership_start_date=start,
                                     membership_end_date=add_months(start, plan.duration_months),
                                     subscription_status='active', loyalty_points=0, fitness_goal=m['goal']))

    for name, items in STORE.items():
        category = StoreCategory(name=name, description=f'{name} available at the front desk.')
        db.session.add(category)
        db.session.flush()
        for item in items:
            db.session.add(StoreItem(category_id=category.id, low_stock_threshold=5, **item))

    db.session.add(StorePromotion(code='WELCOME10', name='Welcome discount', discount_type='percentage',
                                  discount_value=10, max_discount_amount=1000.0, usage_limit=100, created_by=admin.id))

    db.session.add(Facility(name='Squash Court', description='Single glass-back squash court.', location='Level 2',
                            max_capacity=2, default_duration_minutes=60, base_price=1500.0,
                            peak_hours_start=datetime.time(17, 0), peak_hours_end=datetime.time(21, 0),
                            peak_price_multiplier=1.5, member_discount_percentage=15, cancellation_hours=24,
                            refund_percentage=100))

    log_activity('Admin User', 'initialized the Finova database.')
    db.session.commit()


def register_commands(app):
    @app.cli.command('init-db')
    def init_db_command():
        """Drop and recreate all tables, then load sample data."""
        db.drop_all()
        db.create_all()
        seed()
        click.echo('Database initialized successfully with sample data.')
