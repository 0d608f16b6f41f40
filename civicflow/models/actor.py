"""Actor (profile) model."""

from enum import Enum

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, enum_column


class ActorRole(str, Enum):
    """Role held by an actor. Roles are mutually exclusive."""

    CITIZEN = "citizen"
    PLATFORM_ADMIN = "platform_admin"
    AREA_SUPERVISOR = "area_supervisor"
    DEPARTMENT_ADMIN = "department_admin"
    CONTRACTOR = "contractor"


class Actor(BaseModel):
    """
    Actor entity mirrored from the identity provider.

    Credentials live with the identity provider; this table only carries the
    role and the administrative relationships used for authorization.
    """

    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    role: Mapped[ActorRole] = mapped_column(
        enum_column(ActorRole, "actorrole"),
        default=ActorRole.CITIZEN,
        nullable=False,
    )

    # Administrative relationships
    assigned_area_id: Mapped[int | None] = mapped_column(
        ForeignKey("areas.id"),
        nullable=True,
    )
    assigned_department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_profiles_role_department", "role", "assigned_department_id"),
        Index("ix_profiles_role_area", "role", "assigned_area_id"),
    )

    def __repr__(self) -> str:
        return f"<Actor(id={self.id}, role={self.role})>"

    @property
    def is_platform_admin(self) -> bool:
        return self.role == ActorRole.PLATFORM_ADMIN

    def supervises_area(self, area_id: int | None) -> bool:
        """Check if this actor is the area supervisor of ``area_id``."""
        return (
            self.role == ActorRole.AREA_SUPERVISOR
            and area_id is not None
            and self.assigned_area_id == area_id
        )

    def administers_department(self, department_id: int | None) -> bool:
        """Check if this actor is a department admin of ``department_id``."""
        return (
            self.role == ActorRole.DEPARTMENT_ADMIN
            and department_id is not None
            and self.assigned_department_id == department_id
        )
