# Overview: Request decorators for API routes; bearer authentication and per-actor throttling.

from functools import wraps
from flask import current_app, request, jsonify, g

from .errors import RateLimitExceeded
from .extensions import rate_limiter
from .services import session_service


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.tenant_id: The tenant ID taken from the session record
    - g.session_context: The full SessionContext object

    Returns 401 if the Authorization header is missing, the token is
    invalid or expired, or the user or tenant has been deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.tenant_id = context.tenant_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def rate_limit(bucket: str, kind: str = "WRITE"):
    """
    Throttle an endpoint per authenticated user.

    kind selects the RATE_LIMIT_<kind>_MAX config key. Must be applied
    below @require_auth so g.current_user is set.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Authentication required"}), 401

            config = current_app.config
            max_requests = config.get(f"RATE_LIMIT_{kind}_MAX", 30)
            window = config.get("RATE_LIMIT_WINDOW_SECONDS", 60)

            key = f"{g.tenant_id}:{g.current_user.id}:{kind}:{bucket}"
            result = rate_limiter.hit(key, max_requests, window)
            if not result.allowed:
                current_app.logger.warning(
                    "Rate limit hit for user %s on %s", g.current_user.id, bucket,
                )
                body, status = RateLimitExceeded(result.retry_after_seconds).to_response()
                response = jsonify(body)
                response.headers["Retry-After"] = str(result.retry_after_seconds)
                return response, status

            return f(*args, **kwargs)

        return decorated_function
    return decorator
