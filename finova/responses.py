from flask import jsonify


def ok(data=None, message=None, status=200, **extra):
    body = {'success': True}
    if message:
        body['message'] = message
    if data is not None:
        body['data'] = data
    body.update(extra)
    return jsonify(body), status


def created(data=None, message=None, **extra):
    return ok(data, message, 201, **extra)
