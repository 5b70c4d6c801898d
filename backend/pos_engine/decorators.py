# Overview: Request decorators for API routes (acting operator resolution).

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import Operator


OPERATOR_HEADER = "X-Operator-Id"


def require_operator(f):
    """
    Resolve the acting operator for the request.

    Sets the following Flask g attributes:
    - g.operator: The active Operator row
    - g.store_id: The operator's store ID (all POS calls are scoped to it)

    Returns 401 when the header is missing or unknown, 403 when the operator
    is deactivated. Authentication itself happens upstream.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(OPERATOR_HEADER, "").strip()
        if not raw.isdigit():
            return jsonify({"error": "Operator required"}), 401

        operator = db.session.get(Operator, int(raw))
        if not operator:
            return jsonify({"error": "Unknown operator"}), 401
        if not operator.is_active:
            return jsonify({"error": "Operator is inactive"}), 403

        g.operator = operator
        g.store_id = operator.store_id

        return f(*args, **kwargs)

    return decorated_function
