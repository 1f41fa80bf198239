# Overview: Request decorators for API routes.

from functools import wraps

from flask import g, request

from .responses import failure
from .services.stock_service import resolve_stock_id
from .validation import ValidationError


def stock_scope(required: bool = True, arg: str = "stockId"):
    """
    Resolve the stock named in the query string (slug or id).

    Sets g.stock_id (None when optional and absent). An unknown stock is a
    400 whether or not the parameter is required; it never falls back to a
    default location.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            raw = request.args.get(arg)
            if raw is None or not raw.strip():
                if required:
                    return failure(f"Paramètre {arg} requis", 400)
                g.stock_id = None
                return f(*args, **kwargs)

            try:
                g.stock_id = resolve_stock_id(raw)
            except ValidationError as e:
                return failure(e.message, e.status)
            return f(*args, **kwargs)

        return decorated_function

    return decorator
