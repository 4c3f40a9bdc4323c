"""Background job functions for RQ worker."""


def rollover_shift_job():
    """Open the next shift, then schedule this job again for the following boundary."""
    from wms import create_app

    app = create_app()

    with app.app_context():
        from wms.models import utcnow
        from wms.services.queue import queue_service
        from wms.services.shifts import ShiftService, next_shift_start

        shift = ShiftService.handle_shift_rollover()

        run_at = next_shift_start(utcnow(), app.config['SHIFT_BOUNDARY_HOUR'])
        queue_service.schedule_next_rollover(run_at)
        app.logger.info(f"Next shift rollover scheduled for {run_at.isoformat()}")
        return shift.id if shift else None


def send_payment_notification_job(payment_id):
    """Background job to record a payment notification."""
    from wms import create_app

    app = create_app()

    with app.app_context():
        from wms.services.payments import PaymentService

        try:
            payment = PaymentService.send_payment_notification(payment_id)
        except Exception as e:
            app.logger.error(f"Payment notification job failed for {payment_id}: {e}")
            raise
        return payment.id


__all__ = ['rollover_shift_job', 'send_payment_notification_job']
