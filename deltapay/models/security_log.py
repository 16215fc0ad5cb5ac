"""SecurityLog model - append-only audit trail of security events."""

from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from deltapay.models.base import BaseModel

# Severity levels
Severity = Enum(
    "info",
    "warning",
    "error",
    name="security_log_severity",
    create_constraint=True,
)


class SecurityLog(BaseModel):
    """Security log entry.

    Rows are never updated. They are only removed by the bulk retention
    cleanup. ``created_at`` is the event timestamp.
    """

    __tablename__ = "security_logs"

    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    employee_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity: Mapped[str] = mapped_column(Severity, nullable=False, default="info")

    __table_args__ = (
        Index("ix_security_logs_severity_created", "severity", "created_at"),
        Index("ix_security_logs_action_created", "action", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<SecurityLog {self.action} {self.severity}>"

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "employee_id": self.employee_id,
            "action": self.action,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "details": self.details,
            "severity": self.severity,
            "timestamp": self.created_at.isoformat() if self.created_at else None,
        }
