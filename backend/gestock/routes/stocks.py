# Overview: Flask API routes exposing the fixed stock registry.

from flask import Blueprint

from ..responses import failure, success
from ..services import stock_service
from ..validation import ValidationError


stocks_bp = Blueprint("stocks", __name__, url_prefix="/api/stocks")


@stocks_bp.get("")
def list_stocks_route():
    return success(stock_service.list_stocks())


@stocks_bp.get("/<stock_ref>")
def get_stock_route(stock_ref: str):
    """Accepts a slug or a numeric id."""
    try:
        return success(stock_service.get_stock(stock_ref).to_dict())
    except ValidationError as e:
        return failure(e.message, 404)
