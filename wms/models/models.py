from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wms.extensions import db, bcrypt

JSONType = JSON().with_variant(JSONB, 'postgresql')


def utcnow() -> datetime:
    """Naive UTC timestamp; all DateTime columns store UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class TimestampedBase(db.Model):
    """Abstract base providing id/created/updated columns."""

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class UserRole(Enum):
    ADMIN = "admin"
    WRITER = "writer"


class WriterStatus(Enum):
    ACTIVE = "active"
    PROBATION = "probation"
    SUSPENDED = "suspended"


class StatusAction(Enum):
    WARNING = "warning"
    PROBATION = "probation"
    SUSPENSION = "suspension"
    ACTIVATION = "activation"


class OrderStatus(Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    CANCELLED = "cancelled"


class CancellationConsequence(Enum):
    WARNING = "warning"
    PROBATION = "probation"
    SUSPENSION = "suspension"


class SubmissionStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethod(Enum):
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"
    MPESA = "mpesa"
    CHECK = "check"
    OTHER = "other"


# Legal transitions per status enum. Terminal states map to an empty set.
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.ASSIGNED: frozenset({OrderStatus.ASSIGNED, OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED}),
    OrderStatus.IN_PROGRESS: frozenset({OrderStatus.SUBMITTED, OrderStatus.CANCELLED}),
    OrderStatus.SUBMITTED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

SUBMISSION_TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.PENDING: frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED}),
    SubmissionStatus.APPROVED: frozenset(),
    SubmissionStatus.REJECTED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PAID: frozenset(),
    PaymentStatus.FAILED: frozenset(),
}

WRITER_TRANSITIONS: dict[WriterStatus, frozenset[WriterStatus]] = {
    WriterStatus.ACTIVE: frozenset({WriterStatus.PROBATION, WriterStatus.SUSPENDED}),
    WriterStatus.PROBATION: frozenset({WriterStatus.ACTIVE, WriterStatus.SUSPENDED}),
    WriterStatus.SUSPENDED: frozenset({WriterStatus.ACTIVE, WriterStatus.PROBATION}),
}


class User(TimestampedBase):
    __tablename__ = "user"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False, default='')
    last_name: Mapped[str] = mapped_column(String(120), nullable=False, default='')
    phone: Mapped[str | None] = mapped_column(String(32))
    role: Mapped[UserRole] = mapped_column(
        SqlEnum(UserRole, name="user_role", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=UserRole.WRITER,
    )
    active: Mapped[bool] = mapped_column('is_active', Boolean, nullable=False, default=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    token_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    invite_token: Mapped[str | None] = mapped_column(String(64), unique=True, index=True)
    invite_token_expiry: Mapped[datetime | None] = mapped_column(DateTime)
    invited_by: Mapped[str | None] = mapped_column(String(36))

    reset_otp_hash: Mapped[str | None] = mapped_column(String(255))
    reset_otp_expiry: Mapped[datetime | None] = mapped_column(DateTime)

    writer_profile: Mapped["Writer | None"] = relationship(
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def set_password(self, password: str) -> None:
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        except ValueError:
            return False

    def has_role(self, *roles: UserRole | str) -> bool:
        role_value = self.role.value if isinstance(self.role, UserRole) else str(self.role)
        allowed = {r.value if isinstance(r, UserRole) else str(r) for r in roles}
        return role_value in allowed

    def invalidate_sessions(self) -> None:
        """Bump the token version so previously issued sessions stop loading."""
        self.token_version = (self.token_version or 0) + 1

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_active(self) -> bool:  # Flask-Login compatibility
        return bool(self.active)

    @property
    def is_anonymous(self) -> bool:
        return False

    def get_id(self) -> str:
        # Session id carries the token version; a bumped version no longer matches
        return f"{self.id}:{self.token_version or 0}"


class Writer(TimestampedBase):
    __tablename__ = "writer"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    status: Mapped[WriterStatus] = mapped_column(
        SqlEnum(WriterStatus, name="writer_status", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=WriterStatus.ACTIVE,
    )
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    lifetime_earnings: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal('0'))
    total_orders_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_pages_completed: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0'))
    current_shift_pages: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0'))
    current_shift_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_submission_date: Mapped[datetime | None] = mapped_column(DateTime)

    user: Mapped[User] = relationship(back_populates="writer_profile")
    orders: Mapped[list["Order"]] = relationship(back_populates="writer")
    submissions: Mapped[list["Submission"]] = relationship(back_populates="writer")
    payments: Mapped[list["Payment"]] = relationship(back_populates="writer")
    status_logs: Mapped[list["WriterStatusLog"]] = relationship(
        back_populates="writer",
        order_by="WriterStatusLog.created_at.desc()",
    )

    @property
    def can_receive_work(self) -> bool:
        return self.status in (WriterStatus.ACTIVE, WriterStatus.PROBATION)


class WriterStatusLog(TimestampedBase):
    """Append-only audit trail of writer status changes."""
    __tablename__ = "writer_status_log"

    writer_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("writer.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_status: Mapped[WriterStatus | None] = mapped_column(
        SqlEnum(WriterStatus, name="writer_status", native_enum=False, values_callable=_enum_values),
    )
    new_status: Mapped[WriterStatus] = mapped_column(
        SqlEnum(WriterStatus, name="writer_status", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    action: Mapped[StatusAction] = mapped_column(
        SqlEnum(StatusAction, name="status_action", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    performed_by: Mapped[str | None] = mapped_column(String(36))
    duration_days: Mapped[int | None] = mapped_column(Integer)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime)

    writer: Mapped[Writer] = relationship(back_populates="status_logs")


class Shift(TimestampedBase):
    __tablename__ = "shift"
    __table_args__ = (
        Index(
            "uq_shift_single_active",
            "is_active",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
        Index("ix_shift_active_start", "is_active", "start_time"),
    )

    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    max_pages_per_shift: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    submissions: Mapped[list["Submission"]] = relationship(back_populates="shift")

    def is_current(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return self.start_time <= now <= self.end_time

    @property
    def shift_date(self) -> str:
        return self.start_time.date().isoformat()


class Order(TimestampedBase):
    __tablename__ = "order"
    __table_args__ = (
        Index("ix_order_status_created", "status", "created_at"),
    )

    order_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    deadline: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    pages: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    cpp: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    instructions: Mapped[str | None] = mapped_column(Text)

    writer_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("writer.id", ondelete="SET NULL"),
        index=True,
    )
    status: Mapped[OrderStatus] = mapped_column(
        SqlEnum(OrderStatus, name="order_status", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=OrderStatus.ASSIGNED,
    )

    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    cancellation_consequence: Mapped[CancellationConsequence | None] = mapped_column(
        SqlEnum(CancellationConsequence, name="cancellation_consequence", native_enum=False,
                values_callable=_enum_values),
    )
    cancelled_by: Mapped[str | None] = mapped_column(String(36))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)

    attachment_paths: Mapped[list | None] = mapped_column(JSONType, default=list)
    attachment_names: Mapped[list | None] = mapped_column(JSONType, default=list)

    writer: Mapped[Writer | None] = relationship(back_populates="orders")
    submissions: Mapped[list["Submission"]] = relationship(back_populates="order")

    def can_transition_to(self, status: OrderStatus) -> bool:
        return status in ORDER_TRANSITIONS[self.status]

    @property
    def is_overdue(self) -> bool:
        return utcnow() > self.deadline and self.status != OrderStatus.SUBMITTED

    @property
    def days_to_due(self) -> int:
        delta = self.deadline - utcnow()
        return -((-int(delta.total_seconds())) // 86400)


class Submission(TimestampedBase):
    __tablename__ = "submission"
    __table_args__ = (
        Index("ix_submission_writer_created", "writer_id", "created_at"),
    )

    order_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("order.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    writer_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("writer.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    shift_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("shift.id", ondelete="SET NULL"),
        index=True,
    )
    pages_worked: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    cpp: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    file_paths: Mapped[list | None] = mapped_column(JSONType, default=list)
    file_names: Mapped[list | None] = mapped_column(JSONType, default=list)
    notes: Mapped[str | None] = mapped_column(Text)

    status: Mapped[SubmissionStatus] = mapped_column(
        SqlEnum(SubmissionStatus, name="submission_status", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=SubmissionStatus.PENDING,
    )
    reviewed_by: Mapped[str | None] = mapped_column(String(36))
    review_notes: Mapped[str | None] = mapped_column(Text)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime)

    order: Mapped[Order] = relationship(back_populates="submissions")
    writer: Mapped[Writer] = relationship(back_populates="submissions")
    shift: Mapped[Shift | None] = relationship(back_populates="submissions")

    def can_transition_to(self, status: SubmissionStatus) -> bool:
        return status in SUBMISSION_TRANSITIONS[self.status]


class Payment(TimestampedBase):
    __tablename__ = "payment"

    writer_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("writer.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default='KSH')
    status: Mapped[PaymentStatus] = mapped_column(
        SqlEnum(PaymentStatus, name="payment_status", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    method: Mapped[PaymentMethod | None] = mapped_column(
        SqlEnum(PaymentMethod, name="payment_method", native_enum=False, values_callable=_enum_values),
    )
    transaction_reference: Mapped[str | None] = mapped_column(String(128))
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(36))
    paid_by: Mapped[str | None] = mapped_column(String(36))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime)
    notification_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notification_sent_at: Mapped[datetime | None] = mapped_column(DateTime)

    writer: Mapped[Writer] = relationship(back_populates="payments")
    logs: Mapped[list["PaymentLog"]] = relationship(
        back_populates="payment",
        order_by="PaymentLog.created_at",
    )

    def can_transition_to(self, status: PaymentStatus) -> bool:
        return status in PAYMENT_TRANSITIONS[self.status]


class PaymentLog(TimestampedBase):
    """Append-only mirror of payment events."""
    __tablename__ = "payment_log"

    payment_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("payment.id", ondelete="SET NULL"),
        index=True,
    )
    transaction_id: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    writer_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default='KSH')
    status: Mapped[PaymentStatus] = mapped_column(
        SqlEnum(PaymentStatus, name="payment_status", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        SqlEnum(PaymentMethod, name="payment_method", native_enum=False, values_callable=_enum_values),
    )
    processed_by: Mapped[str | None] = mapped_column(String(36))
    processed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    notification_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text)

    payment: Mapped[Payment | None] = relationship(back_populates="logs")
