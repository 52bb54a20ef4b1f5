"""
Requester identity and report access control.

Report endpoints use a role allow-list. The role is resolved from the
platform role first (a platform super admin is ``super_admin``), then from
the user's active business membership (``owner``, ``admin``, ``manager``,
``cashier``).
"""
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from rest_framework.permissions import BasePermission

from .models import User


SUPER_ADMIN_ROLE = 'super_admin'


@dataclass(frozen=True)
class RequesterIdentity:
    """Who is asking for a report, and on behalf of which tenant."""
    id: str
    name: str
    email: str
    role: Optional[str]
    tenant_id: Optional[str]
    default_branch_id: Optional[str] = None

    @property
    def is_super_admin(self):
        return self.role == SUPER_ADMIN_ROLE

    def as_metadata(self):
        return {'id': self.id, 'name': self.name, 'email': self.email}


def resolve_requester(user) -> Optional[RequesterIdentity]:
    """Build the requester identity for an authenticated user."""
    if not user or not user.is_authenticated:
        return None

    membership = user.get_active_membership()
    tenant_id = str(membership.business_id) if membership else None
    default_branch_id = (
        str(membership.default_branch_id)
        if membership and membership.default_branch_id else None
    )

    if user.platform_role == User.PLATFORM_SUPER_ADMIN:
        role = SUPER_ADMIN_ROLE
    elif membership:
        role = membership.role.lower()
    else:
        role = None

    return RequesterIdentity(
        id=str(user.pk),
        name=user.name,
        email=user.email,
        role=role,
        tenant_id=tenant_id,
        default_branch_id=default_branch_id,
    )


def get_requester(request) -> Optional[RequesterIdentity]:
    """Resolve the requester once per request and cache it on the request."""
    cached = getattr(request, '_report_requester', None)
    if cached is None:
        cached = resolve_requester(request.user)
        request._report_requester = cached
    return cached


class IsReportAdministrator(BasePermission):
    """
    Allow access only to roles listed in ``REPORTS_PRIVILEGED_ROLES``.

    A super admin always passes. Everyone else must also belong to a tenant.
    """
    message = 'Insufficient permissions'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        requester = get_requester(request)
        if requester is None or requester.role is None:
            return False

        allowed_roles = {role.lower() for role in settings.REPORTS_PRIVILEGED_ROLES}
        if requester.role not in allowed_roles:
            return False

        return requester.is_super_admin or requester.tenant_id is not None
