"""SQLAlchemy ORM table models for Digger.

Categories:
- COORDINATION: ProjectLockRow (one row per held lock; the composite primary
  key is the atomic check-and-set)
- OPERATIONAL: AccessPolicyRow (policy documents, updated in place)
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.db.session import Base


# ---------------------------------------------------------------------------
# Coordination
# ---------------------------------------------------------------------------


class ProjectLockRow(Base):
    """Exclusive lock on a project workspace. Row present == lock held."""

    __tablename__ = "project_locks"

    namespace: Mapped[str] = mapped_column(String(255), primary_key=True)
    repository: Mapped[str] = mapped_column(String(255), primary_key=True)
    project: Mapped[str] = mapped_column(String(255), primary_key=True)
    workspace: Mapped[str] = mapped_column(String(255), primary_key=True)
    pr_number: Mapped[int] = mapped_column(Integer, nullable=False)
    requested_by: Mapped[str] = mapped_column(String(255), default="")
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


class AccessPolicyRow(Base):
    """RBAC policy document.

    Organisation-level rows have empty namespace/project; project-level rows
    have an empty organisation.
    """

    __tablename__ = "access_policies"
    __table_args__ = (
        UniqueConstraint("organisation", "namespace", "project", name="uq_access_policy_scope"),
    )

    policy_id: Mapped[UUID] = mapped_column(primary_key=True)
    organisation: Mapped[str] = mapped_column(String(255), nullable=False, default="", index=True)
    namespace: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    project: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    policy: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
