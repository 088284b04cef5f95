"""
Request middleware for PawLedger.
"""
from .tenant_auth import require_tenant, require_module, get_tenant_from_request
