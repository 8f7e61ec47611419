# Overview: Request decorators for API routes; establish the asserted actor and its trust tier.

from functools import wraps
from flask import current_app, request, jsonify, g


def _is_identified() -> bool:
    return getattr(g, "actor_id", None) is not None


def require_actor(f):
    """
    Establish the acting user from request headers.

    Identity is verified upstream (gateway / identity layer); this service
    trusts the asserted values. Sets on flask.g:
    - g.actor_id:      X-Actor-Id (required)
    - g.actor_name:    X-Actor-Name (optional display name)
    - g.actor_role:    X-Actor-Role (optional)
    - g.is_privileged: role equals PRIVILEGED_ROLE

    Returns 401 when X-Actor-Id is missing.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = (request.headers.get("X-Actor-Id") or "").strip()
        if not actor_id:
            return jsonify({"error": "Actor identity required"}), 401

        role = (request.headers.get("X-Actor-Role") or "").strip().lower()

        g.actor_id = actor_id
        g.actor_name = (request.headers.get("X-Actor-Name") or "").strip() or None
        g.actor_role = role or None
        g.is_privileged = role == current_app.config.get("PRIVILEGED_ROLE", "admin")

        return f(*args, **kwargs)

    return decorated_function


def require_privileged(f):
    """
    Require a privileged actor. Must be stacked under @require_actor.

    Returns 403 for unprivileged actors.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_identified():
            return jsonify({"error": "Actor identity required"}), 401

        if not g.is_privileged:
            current_app.logger.warning(
                "Privileged route %s %s denied for actor %s", request.method, request.path, g.actor_id
            )
            return jsonify({"error": "Permission denied", "message": "Privileged role required"}), 403

        return f(*args, **kwargs)

    return decorated_function
