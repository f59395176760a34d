from __future__ import annotations

import uuid

from ..extensions import db
from gymledger.time_utils import to_utc_z


def new_id() -> str:
    return str(uuid.uuid4())


class Tenant(db.Model):
    """
    Multi-tenant root: every gym business is a Tenant.

    All branches, members and ledger rows belong to exactly one tenant.
    No data may cross tenant boundaries.

    `timezone` decides what "today" means when rejecting future-dated
    payments; it defaults to UTC.
    """
    __tablename__ = "tenants"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "timezone": self.timezone,
            "created_at": to_utc_z(self.created_at),
        }


class Branch(db.Model):
    """
    Branch (gym location) within a tenant.

    Revenue reports and month locks are scoped per (tenant, branch).
    """
    __tablename__ = "branches"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_branches_tenant_name"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    tenant_id = db.Column(db.String(36), db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    tenant = db.relationship("Tenant", backref=db.backref("branches", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
        }


class Member(db.Model):
    """
    Gym member who pays membership fees.

    Payments copy the member's current branch at creation time.
    """
    __tablename__ = "members"
    __table_args__ = (
        db.Index("ix_members_tenant_branch", "tenant_id", "branch_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    tenant_id = db.Column(db.String(36), db.ForeignKey("tenants.id"), nullable=False, index=True)
    branch_id = db.Column(db.String(36), db.ForeignKey("branches.id"), nullable=False, index=True)
    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    branch = db.relationship("Branch", backref=db.backref("members", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "branch_id": self.branch_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
        }
