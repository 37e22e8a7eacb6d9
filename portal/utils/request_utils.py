# portal/utils/request_utils.py
from flask import Request, jsonify

_TRUTHY = ('true', '1', 'yes')


def is_confirmed(req: Request) -> bool:
    """True when a destructive request carries confirm=true in the query string or JSON body."""
    if req.args.get('confirm', '').lower() in _TRUTHY:
        return True
    body = req.get_json(silent=True)
    if isinstance(body, dict):
        value = body.get('confirm')
        return value is True or (isinstance(value, str) and value.lower() in _TRUTHY)
    return False


def confirmation_required_response():
    return jsonify({
        "error_code": "CONFIRMATION_REQUIRED",
        "message": "Deletion must be confirmed with confirm=true."
    }), 400
