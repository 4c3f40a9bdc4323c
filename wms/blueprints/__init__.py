"""JSON API blueprints, mounted under /api."""

from wms.blueprints.analytics import analytics_bp
from wms.blueprints.auth import auth_bp
from wms.blueprints.orders import orders_bp
from wms.blueprints.payments import payments_bp
from wms.blueprints.shifts import shifts_bp
from wms.blueprints.submissions import submissions_bp
from wms.blueprints.writers import writers_bp

API_BLUEPRINTS = (
    (auth_bp, '/api/auth'),
    (orders_bp, '/api/orders'),
    (submissions_bp, '/api/submissions'),
    (payments_bp, '/api/payments'),
    (shifts_bp, '/api/shifts'),
    (writers_bp, '/api/writers'),
    (analytics_bp, '/api/analytics'),
)

__all__ = [
    'API_BLUEPRINTS',
    'analytics_bp',
    'auth_bp',
    'orders_bp',
    'payments_bp',
    'shifts_bp',
    'submissions_bp',
    'writers_bp',
]
