"""Pay period model."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from punchd.models.base import Base, TimestampMixin, uuid_pk
from punchd.models.enums import PayPeriodStatus, check_in


class PayPeriod(Base, TimestampMixin):
    """Company-scoped accounting window.

    ``start_date``/``end_date`` are UTC instants covering whole days
    (00:00:00.000 to 23:59:59.999). Entries are covered by clock-in time.
    """

    __tablename__ = "pay_period"

    id: Mapped[UUID] = uuid_pk()
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_date: Mapped[datetime] = mapped_column(nullable=False)
    end_date: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=PayPeriodStatus.OPEN.value
    )
    auto_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Lock / export audit
    locked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    locked_by_id: Mapped[UUID | None] = mapped_column(ForeignKey("app_user.id"), nullable=True)
    exported_at: Mapped[datetime | None] = mapped_column(nullable=True)
    exported_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.id"), nullable=True
    )

    # Owner unlock override (kept across later locks)
    override_at: Mapped[datetime | None] = mapped_column(nullable=True)
    override_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.id"), nullable=True
    )
    override_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "company_id",
            "start_date",
            "end_date",
            name="pay_period_company_dates_unique",
        ),
        CheckConstraint(check_in("status", PayPeriodStatus), name="pay_period_status_check"),
        CheckConstraint("end_date > start_date", name="pay_period_dates_check"),
    )

    def covers(self, instant: datetime) -> bool:
        return self.start_date <= instant <= self.end_date
