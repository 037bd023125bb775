from functools import wraps

from flask_jwt_extended import current_user, verify_jwt_in_request

from datawaves.errors import PermissionDenied
from datawaves.models.user import UserRole


def role_required(*allowed_roles):
    """
    Require a valid access token whose user holds one of ``allowed_roles``.
    Use as: @role_required(UserRole.ADMIN)
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if current_user.role not in allowed_roles:
                raise PermissionDenied(
                    f"Required roles: {', '.join(allowed_roles)}",
                    code="ADMIN_REQUIRED" if allowed_roles == (UserRole.ADMIN,) else None,
                )
            return fn(*args, **kwargs)
        return wrapper
    return decorator


admin_required = role_required(UserRole.ADMIN)
