# Overview: Flask API route for the dashboard statistics.

from flask import Blueprint, g

from ..decorators import stock_scope
from ..responses import internal_error, service_failure, success
from ..services import statistics_service
from ..validation import ServiceError


statistics_bp = Blueprint("statistics", __name__, url_prefix="/api/statistics")


@statistics_bp.get("")
@stock_scope(required=False)
def dashboard_route():
    """Dashboard figures for ?stockId=<slug>, or across every stock when omitted."""
    try:
        return success(statistics_service.dashboard(g.stock_id))

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("compute statistics")
