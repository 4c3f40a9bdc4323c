"""ORM models for the writer shift and earnings ledger."""

from wms.models.models import (  # noqa: F401
    ORDER_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    SUBMISSION_TRANSITIONS,
    WRITER_TRANSITIONS,
    CancellationConsequence,
    Order,
    OrderStatus,
    Payment,
    PaymentLog,
    PaymentMethod,
    PaymentStatus,
    Shift,
    StatusAction,
    Submission,
    SubmissionStatus,
    TimestampedBase,
    User,
    UserRole,
    Writer,
    WriterStatus,
    WriterStatusLog,
    utcnow,
)
