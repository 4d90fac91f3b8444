from flask import Blueprint, g
from sqlalchemy import func

from ..auth import roles_required
from ..errors import AuthorizationError, NotFoundError
from ..extensions import atomic, db
from ..models import MealPlanTemplate, MealPlanTemplateMeal, log_activity
from ..responses import created, ok
from ..schemas import MealPlanTemplateCreate, MealPlanTemplateUpdate
from ..validation import parse_body, provided_fields

meal_plan_templates_bp = Blueprint('meal_plan_templates', __name__)

PUBLIC_LIMIT = 20


def _meal_counts(template_ids):
    if not template_ids:
        return {}
    rows = (db.session.query(MealPlanTemplateMeal.template_id, func.count(MealPlanTemplateMeal.id))
            .filter(MealPlanTemplateMeal.template_id.in_(template_ids))
            .group_by(MealPlanTemplateMeal.template_id).all())
    return dict(rows)


def _owned_template(template_id):
    template = db.session.get(MealPlanTemplate, template_id)
    if not template or not template.is_active:
        raise NotFoundError('Template not found')
    if template.nutritionist_id != g.current_user.id:
        raise AuthorizationError('Access denied to this template')
    return template


def _set_meals(template, meals):
    template.meals.delete()
    for meal in meals:
        db.session.add(MealPlanTemplateMeal(template_id=template.id, **meal))
    template.meal_count = len(meals)


def template_detail(template):
    meals = template.meals.order_by(MealPlanTemplateMeal.meal_order, MealPlanTemplateMeal.id).all()
    return template.to_dict(meals=[meal.to_dict() for meal in meals])


@meal_plan_templates_bp.route('/', methods=['GET'])
@roles_required('nutritionist')
def list_templates():
    templates = (MealPlanTemplate.query.filter_by(nutritionist_id=g.current_user.id, is_active=True)
                 .order_by(MealPlanTemplate.created_at.desc(), MealPlanTemplate.id.desc()).all())
    counts = _meal_counts([template.id for template in templates])
    return ok([template.to_dict(total_meals=counts.get(template.id, 0)) for template in templates])


@meal_plan_templates_bp.route('/public/all', methods=['GET'])
@roles_required('nutritionist')
def public_templates():
    templates = (MealPlanTemplate.query.filter_by(is_public=True, is_active=True)
                 .order_by(MealPlanTemplate.created_at.desc(), MealPlanTemplate.id.desc())
                 .limit(PUBLIC_LIMIT).all())
    counts = _meal_counts([template.id for template in templates])
    return ok([template.to_dict(total_meals=counts.get(template.id, 0),
                                nutritionist_name=template.nutritionist.full_name) for template in templates])


@meal_plan_templates_bp.route('/<int:template_id>', methods=['GET'])
@roles_required('nutritionist')
def get_template(template_id):
    template = MealPlanTemplate.query.filter_by(id=template_id, nutritionist_id=g.current_user.id,
                                                is_active=True).first()
    if not template:
        raise NotFoundError('Template not found')
    return ok(template_detail(template))


@meal_plan_templates_bp.route('/', methods=['POST'])
@roles_required('nutritionist')
def create_template():
    data = parse_body(MealPlanTemplateCreate)
    user = g.current_user
    fields = data.model_dump()
    meals = fields.pop('meals')
    with atomic('Failed to create meal plan template'):
        template = MealPlanTemplate(nutritionist_id=user.id, **fields)
        db.session.add(template)
        db.session.flush()
        _set_meals(template, meals)
        log_activity(user.full_name, f"created meal plan template '{template.template_name}'.")
    return created(template_detail(template), 'Meal plan template created successfully')


@meal_plan_templates_bp.route('/<int:template_id>', methods=['PUT'])
@roles_required('nutritionist')
def update_template(template_id):
    data = parse_body(MealPlanTemplateUpdate)
    template = _owned_template(template_id)
    changes = provided_fields(data)
    meals = changes.pop('meals', None)
    with atomic('Failed to update meal plan template'):
        for field, value in changes.items():
            setattr(template, field, value)
        if meals is not None:
            _set_meals(template, meals)
    return ok(template_detail(template), 'Template updated successfully')


@meal_plan_templates_bp.route('/<int:template_id>', methods=['DELETE'])
@roles_required('nutritionist')
def delete_template(template_id):
    template = _owned_template(template_id)
    with atomic('Failed to delete meal plan template'):
        template.is_active = False
        log_activity(g.current_user.full_name, f"deleted meal plan template '{template.template_name}'.")
    return ok(message='Template deleted successfully')
