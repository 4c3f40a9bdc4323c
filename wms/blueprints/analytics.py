"""Dashboard reporting endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from wms.auth import admin_required, writer_required
from wms.blueprints.common import require_writer_profile
from wms.services.analytics import AnalyticsService

analytics_bp = Blueprint('analytics', __name__)


@analytics_bp.route('/dashboard', methods=['GET'])
@admin_required
def dashboard():
    return jsonify(AnalyticsService.get_admin_dashboard())


@analytics_bp.route('/orders-per-day', methods=['GET'])
@admin_required
def orders_per_day():
    days = request.args.get('days', 30, type=int)
    return jsonify({'items': AnalyticsService.get_orders_per_day(days)})


@analytics_bp.route('/earnings-per-writer', methods=['GET'])
@admin_required
def earnings_per_writer():
    return jsonify({'items': AnalyticsService.get_earnings_per_writer()})


@analytics_bp.route('/pages-per-day', methods=['GET'])
@admin_required
def pages_per_day():
    days = request.args.get('days', 14, type=int)
    return jsonify({'items': AnalyticsService.get_pages_per_day(days)})


@analytics_bp.route('/writer/<writer_id>', methods=['GET'])
@admin_required
def writer_analytics(writer_id):
    return jsonify(AnalyticsService.get_writer_analytics(writer_id))


@analytics_bp.route('/my', methods=['GET'])
@writer_required
def my_analytics():
    return jsonify(AnalyticsService.get_writer_analytics(require_writer_profile().id))
