# Overview: Request decorators for API routes (auth, subscription, plan limits).

from functools import wraps
from flask import request, jsonify, g

from .errors import AuthError, FeatureGateError
from .services import session_service, subscription_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'store_id')


def _unauthorized(message: str = "Authentication required"):
    error = AuthError(message)
    return jsonify(error.to_dict()), error.status_code


def require_auth(f):
    """
    Require a bearer token and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: the authenticated User (the biller)
    - g.store_id: the store captured on the token
    - g.session_context: the full SessionContext

    Returns 401 if the header is missing, or the token is invalid, expired or
    revoked, or belongs to a deactivated user or store.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return _unauthorized()

        token = auth_header.split(" ", 1)[1].strip()
        context = session_service.validate_session(token)

        if not context:
            return _unauthorized("Invalid or expired token")

        g.current_user = context.user
        g.store_id = context.store_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_active_subscription(f):
    """
    Require the store's latest subscription to be ACTIVE and not past its end date.

    Sets g.subscription for downstream decorators. Returns 403 with one of
    NO_SUBSCRIPTION, SUBSCRIPTION_EXPIRED, SUBSCRIPTION_CANCELLED,
    SUBSCRIPTION_SUSPENDED.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return _unauthorized()

        try:
            g.subscription = subscription_service.require_active_subscription(g.store_id)
        except FeatureGateError as e:
            return jsonify(e.to_dict()), e.status_code

        return f(*args, **kwargs)

    return decorated_function


def require_feature_limit(feature: str):
    """
    Reject the request once the plan's usage limit for feature is reached.

    Must run after require_active_subscription.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            subscription = getattr(g, 'subscription', None)
            if not _is_authenticated() or subscription is None:
                return jsonify({
                    "error": "Subscription verification required",
                    "code": "NO_SUBSCRIPTION",
                    "details": {},
                }), 403

            try:
                subscription_service.check_feature_limit(g.store_id, feature, subscription=subscription)
            except FeatureGateError as e:
                return jsonify(e.to_dict()), e.status_code

            return f(*args, **kwargs)

        return decorated_function
    return decorator
