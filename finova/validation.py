import datetime

import pydantic
from flask import request

from .errors import ValidationError

MAX_RANGE_DAYS = 366


def parse_body(schema):
    """Parse the JSON body into ``schema``, raising our ValidationError on the first bad field."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    try:
        return schema.model_validate(data)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = '.'.join(str(part) for part in first['loc']) or None
        if first['type'] == 'missing':
            raise ValidationError(f'{field} is required', field=field)
        message = first['msg']
        if first['type'] == 'value_error':
            message = message.replace('Value error, ', '', 1)
        else:
            message = f'Invalid {field}: {message}' if field else message
        raise ValidationError(message, field=field)


def validate_positive_int(value, field):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a positive integer', field=field)
    if number <= 0:
        raise ValidationError(f'{field} must be a positive integer', field=field)
    return number


def validate_limit(value, default=10, maximum=50):
    if value in (None, ''):
        return default
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise ValidationError('Limit must be a number', field='limit')
    if limit < 1 or limit > maximum:
        raise ValidationError(f'Limit must be between 1 and {maximum}', field='limit')
    return limit


def validate_offset(value):
    if value in (None, ''):
        return 0
    try:
        offset = int(value)
    except (TypeError, ValueError):
        raise ValidationError('Offset must be a number', field='offset')
    if offset < 0:
        raise ValidationError('Offset must be 0 or greater', field='offset')
    return offset


def validate_search_term(value):
    term = (value or '').strip()
    if len(term) < 2:
        raise ValidationError('Search term must be at least 2 characters long', field='q')
    if len(term) > 100:
        raise ValidationError('Search term must be 100 characters or less', field='q')
    return term


def parse_date(value, field, required=False):
    if value in (None, ''):
        if required:
            raise ValidationError(f'{field} is required', field=field)
        return None
    try:
        return datetime.date.fromisoformat(value[:10])
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a valid date (YYYY-MM-DD)', field=field)


def validate_date_range(start, end):
    if start and end:
        if start > end:
            raise ValidationError('Start date cannot be after end date', field='start_date')
        if (end - start).days > MAX_RANGE_DAYS:
            raise ValidationError('Date range cannot exceed 1 year', field='end_date')
    return start, end


def date_range_args(args):
    """Read ``date`` or ``start_date``/``end_date`` query args into an inclusive range."""
    single = parse_date(args.get('date'), 'date')
    if single:
        return single, single
    return validate_date_range(parse_date(args.get('start_date'), 'start_date'),
                               parse_date(args.get('end_date'), 'end_date'))


def provided_fields(data):
    """Fields the client actually sent with a non-null value."""
    return {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}
