# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/gestock/routes/products.py
"""
Product catalog API routes.

- GET    /api/products?stockId=<slug>     products of a stock plus global ones
- POST   /api/products                    create (or reuse by reference/name)
- GET    /api/products/search             by barcode or reference
- GET    /api/products/duplicates         consolidation plan
- POST   /api/products/duplicates         run / simulate consolidation
- GET    /api/products/<id>
- PUT    /api/products/<id>
- DELETE /api/products/<id>
"""

from flask import Blueprint, g, request

from ..decorators import stock_scope
from ..responses import internal_error, read_json, service_failure, success
from ..services import duplicate_service, products_service
from ..services.concurrency import commit_with_retry
from ..services.stock_service import get_stock
from ..validation import ServiceError


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@stock_scope(required=True)
def list_products_route():
    try:
        rows, pagination = products_service.list_products(
            stock_id=g.stock_id,
            search=request.args.get("search"),
            page=request.args.get("page", 1),
            limit=request.args.get("limit"),
        )
        return success(rows, pagination=pagination, stockInfo=get_stock(g.stock_id).to_dict())

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("list products")


@products_bp.post("")
def create_product_route():
    """
    Request body:
    {
        "name": "Cahier 96 pages",
        "price": 12.5,
        "quantity": 0,
        "reference": "CAH-96",  (optional)
        "description": "...",  (optional)
        "stock_id": "gros",  (optional: omit for a global product)
        "barcodes": ["6111234567890"]  (optional)
    }

    Returns:
        201: Product created
        200: Existing product reused
    """
    try:
        product, created = products_service.create_product(read_json())
        commit_with_retry()
        if created:
            return success(product.to_dict(), message="Produit créé avec succès", status=201)
        return success(product.to_dict(), message="Produit existant réutilisé", reused=True)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("create product")


@products_bp.get("/search")
def search_product_route():
    try:
        product = products_service.find_product(
            barcode=request.args.get("barcode"),
            reference=request.args.get("reference"),
        )
        return success(product.to_dict())

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("search product")


@products_bp.get("/duplicates")
def find_duplicates_route():
    try:
        return success(duplicate_service.find_duplicates())

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("analyze duplicate products")


@products_bp.post("/duplicates")
def cleanup_duplicates_route():
    """
    Request body: {"cleanupPlan": [...] (optional), "dryRun": true}

    Dry run is the default; pass "dryRun": false to write.
    Each group is committed on its own; failing groups are reported in
    "errors" without stopping the others.
    """
    try:
        payload = read_json()
        dry_run = payload.get("dryRun", True) is not False
        result = duplicate_service.cleanup_duplicates(payload.get("cleanupPlan"), dry_run=dry_run)
        message = "Simulation terminée" if dry_run else "Nettoyage terminé"
        return success(result, message=message)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("clean up duplicate products")


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return success(products_service.get_product(product_id).to_dict())

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("load product")


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    try:
        product = products_service.update_product(product_id, read_json())
        commit_with_retry()
        return success(product.to_dict(), message="Produit mis à jour avec succès")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("update product")


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id)
        commit_with_retry()
        return success(message="Produit supprimé avec succès")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("delete product")
