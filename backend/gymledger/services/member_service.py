# Overview: Read-only lookups of tenant-owned collaborators (members, branches, tenant settings).

from __future__ import annotations

from flask import current_app, has_app_context

from ..extensions import db
from ..models import Branch, Member, Tenant
from ..validation import NotFoundError


MEMBER_NOT_FOUND_MESSAGE = "Member not found"


def get_member(tenant_id: str, member_id: str) -> Member:
    """
    Resolve a member owned by the tenant.

    SECURITY: absent and foreign members raise the same NotFoundError so
    callers cannot discover ids belonging to other tenants.
    """
    member = db.session.get(Member, member_id) if member_id else None
    if not member or member.tenant_id != tenant_id:
        raise NotFoundError("MEMBER_NOT_FOUND", MEMBER_NOT_FOUND_MESSAGE)
    return member


def get_tenant_timezone(tenant_id: str) -> str:
    """IANA timezone used for the tenant's business dates."""
    tenant = db.session.get(Tenant, tenant_id)
    if tenant and tenant.timezone:
        return tenant.timezone
    if has_app_context():
        return current_app.config.get("DEFAULT_TENANT_TIMEZONE", "UTC")
    return "UTC"


def get_branch(tenant_id: str, branch_id: str) -> Branch:
    """Resolve a branch owned by the tenant (same NotFoundError for foreign ids)."""
    branch = db.session.get(Branch, branch_id) if branch_id else None
    if not branch or branch.tenant_id != tenant_id:
        raise NotFoundError("BRANCH_NOT_FOUND", "Branch not found")
    return branch
