"""Application factory for the writer shift and earnings ledger."""

from __future__ import annotations

import os

from flask import Flask, jsonify

from wms.blueprints import API_BLUEPRINTS
from wms.blueprints.common import register_error_handlers
from wms.config import Config
from wms.extensions import (
    db,
    migrate,
    login_manager,
    limiter,
)
from wms.models import User


def create_app(config_class=Config):
    """Create Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # Create missing tables for development environments without migrations
    if os.getenv('WMS_SKIP_BOOTSTRAP', '0') != '1':
        try:
            with app.app_context():
                db.create_all()
        except Exception as e:
            app.logger.warning(f"Database bootstrap skipped: {e}")

    @login_manager.user_loader
    def load_user(session_id: str):
        user_id, _, version = session_id.partition(':')
        user = db.session.get(User, user_id)
        if user is None or str(user.token_version or 0) != version:
            return None
        return user

    @login_manager.unauthorized_handler
    def handle_unauthorized():
        return jsonify({'error': 'Authentication required'}), 401

    # Register blueprints
    for blueprint, prefix in API_BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=prefix)
    register_error_handlers(app)

    @app.route('/api/health')
    def health():
        return jsonify({'status': 'ok'})

    @app.teardown_appcontext
    def teardown_db(exception):
        if exception is not None:
            db.session.rollback()

    if app.config.get('ENABLE_SCHEDULER') and not app.config.get('TESTING'):
        _schedule_rollover(app)

    # Register CLI commands
    from wms.commands import register_commands
    register_commands(app)

    return app


def _schedule_rollover(app: Flask) -> None:
    """Make sure a rollover job is waiting for the next shift boundary."""
    from wms.models import utcnow
    from wms.services.queue import queue_service
    from wms.services.shifts import next_shift_start

    try:
        run_at = next_shift_start(utcnow(), app.config['SHIFT_BOUNDARY_HOUR'])
        queue_service.schedule_next_rollover(run_at)
        app.logger.info(f"Shift rollover scheduled for {run_at.isoformat()}")
    except Exception as e:
        app.logger.error(f"Could not schedule shift rollover: {e}")


__all__ = ['create_app']
