"""
RouteWarden Server - FieldPermission Database Model

Per-role, per-table, per-field read/write flags.
Independent of route permissions; absence of a row means no access.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from models.database.base import Base


class FieldPermission(Base):
    """
    Field_permissions table - column-level visibility rules per role
    """
    __tablename__ = "field_permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    table_name = Column(String, nullable=False)
    field_name = Column(String, nullable=False)
    can_read = Column(Boolean, nullable=False, default=False)
    can_write = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    role = relationship("Role", back_populates="field_permissions")

    __table_args__ = (
        UniqueConstraint('role_id', 'table_name', 'field_name', name='uq_field_permissions_role_table_field'),
        Index('idx_field_permissions_table_field', 'table_name', 'field_name'),
        Index('idx_field_permissions_role_table', 'role_id', 'table_name'),
    )
