from flask import jsonify


def success_response(payload=None, message=None, status=200):
    resp = {"success": True}
    if payload is not None:
        resp.update(payload if isinstance(payload, dict) else {"data": payload})
    if message:
        resp["message"] = message
    return jsonify(resp), status


def error_response(code, message, details=None, status=400):
    return jsonify({
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        },
    }), status


def service_error_response(err):
    """Render any ServiceError subclass with its own code and HTTP status."""
    return error_response(err.code, err.message, details=err.details, status=err.status)
