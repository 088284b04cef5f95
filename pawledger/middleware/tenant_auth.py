"""
Tenant Authentication Middleware.

Resolves the practice (tenant) and the acting staff member for API requests.

Headers:
    X-Tenant-ID: Tenant id (required)
    X-Actor-ID: Staff member performing the action (recorded as created_by)
"""
from functools import wraps
from flask import request, g
from ..extensions import db
from ..models import Tenant
from ..utils.errors import unauthorized, forbidden, not_found, ErrorCode


def get_tenant_from_request() -> Tenant | None:
    """Tenant named by the X-Tenant-ID header, or None."""
    tenant_id = request.headers.get('X-Tenant-ID')
    if not tenant_id:
        return None
    try:
        return db.session.get(Tenant, int(tenant_id))
    except (ValueError, TypeError):
        return None


def require_tenant(f):
    """
    Decorator to require a tenant for API endpoints.

    Sets g.tenant, g.tenant_id and g.actor_id.

    Usage:
        @require_tenant
        def my_endpoint():
            service = LoyaltyService(g.tenant_id)
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not request.headers.get('X-Tenant-ID'):
            return unauthorized('Missing X-Tenant-ID header')

        tenant = get_tenant_from_request()
        if not tenant:
            return not_found('Tenant not found', ErrorCode.NOT_FOUND)

        if not tenant.is_active:
            return forbidden('This practice\'s access has been disabled', ErrorCode.AUTH_REQUIRED)

        g.tenant = tenant
        g.tenant_id = tenant.id
        g.actor_id = request.headers.get('X-Actor-ID') or 'api:unknown'

        return f(*args, **kwargs)

    return decorated_function


def require_module(module: str):
    """
    Decorator to require a subscription module (e.g. 'appointments').

    Must be used after @require_tenant.

    Usage:
        @require_tenant
        @require_module('appointments')
        def list_appointments():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            tenant = getattr(g, 'tenant', None)
            if not tenant:
                return unauthorized()

            if not tenant.has_module(module):
                return forbidden(f"The '{module}' module is not enabled for this practice")

            return f(*args, **kwargs)

        return decorated_function

    return decorator
