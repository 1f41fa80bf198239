# Overview: Duplicate-product detection and consolidation.

"""
Duplicate Product Consolidation

WHY: Repeated imports and deliveries left several product rows with the
same name. Sales history is split across them, which skews statistics and
confuses the till search.

PLAN: products are grouped by LOWER(TRIM(name)). In every group of two or
more, the product with the most sale lines is kept (ties go to the lowest,
oldest id); the others are proposed for deletion.

CLEANUP (per group, one transaction each):
1. re-point sale_items, return_items and stock_movement_items to the kept id
2. move barcodes to the kept product
3. fold quantity into the kept row when both share the same stock
4. delete the duplicates

Step 4 never runs unless 1-3 succeeded in the same transaction, so no sale
line can be left pointing at a deleted product. A failing group is rolled
back and reported; other groups still proceed.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Barcode, Product, ReturnItem, SaleItem, StockMovementItem
from ..money import to_number
from ..validation import ServiceError
from .concurrency import begin_write, commit_with_retry, lock_for_update, run_with_retry
from .products_service import normalize_name

logger = logging.getLogger(__name__)


class DuplicateCleanupError(ServiceError):
    """Raised when a cleanup plan or group is invalid."""
    pass


def _name_key():
    return func.lower(func.trim(Product.name))


def _sales_by_product(product_ids: list[int]) -> dict[int, tuple[int, Decimal]]:
    rows = (
        db.session.query(
            SaleItem.product_id,
            func.count(SaleItem.id),
            func.coalesce(func.sum(SaleItem.total_price), 0),
        )
        .filter(SaleItem.product_id.in_(product_ids))
        .group_by(SaleItem.product_id)
        .all()
    )
    return {pid: (int(count), Decimal(str(revenue))) for pid, count, revenue in rows}


def find_duplicates() -> dict:
    """
    Build the consolidation plan.

    Returns:
        {"groups": [...], "totalGroups": int, "totalToDelete": int}
    """
    key = _name_key()
    duplicate_keys = [
        row[0]
        for row in db.session.query(key)
        .group_by(key)
        .having(func.count(Product.id) > 1)
        .order_by(key)
        .all()
    ]

    groups = []
    for name_key in duplicate_keys:
        members = db.session.query(Product).filter(key == name_key).order_by(Product.id).all()
        sales = _sales_by_product([p.id for p in members])

        # max sales count, then lowest id
        keep = max(members, key=lambda p: (sales.get(p.id, (0, 0))[0], -p.id))
        details = [
            {
                "productId": p.id,
                "name": p.name,
                "stockId": p.stock_id,
                "salesCount": sales.get(p.id, (0, Decimal("0")))[0],
                "revenue": to_number(sales.get(p.id, (0, Decimal("0")))[1]),
            }
            for p in members
        ]
        groups.append({
            "name": keep.name,
            "duplicateCount": len(members),
            "keepId": keep.id,
            "deleteIds": [p.id for p in members if p.id != keep.id],
            "totalSales": sum(d["salesCount"] for d in details),
            "totalRevenue": to_number(sum((s[1] for s in sales.values()), Decimal("0"))),
            "salesDetails": details,
        })

    return {
        "groups": groups,
        "totalGroups": len(groups),
        "totalToDelete": sum(len(g["deleteIds"]) for g in groups),
    }


def _parse_group(raw) -> tuple[int, list[int]]:
    if not isinstance(raw, dict):
        raise DuplicateCleanupError("Groupe de nettoyage invalide")
    try:
        keep_id = int(raw.get("keepId"))
        delete_ids = [int(x) for x in (raw.get("deleteIds") or [])]
    except (TypeError, ValueError):
        raise DuplicateCleanupError("keepId et deleteIds doivent être des identifiants")
    if not delete_ids:
        raise DuplicateCleanupError(f"Aucun produit à supprimer pour le groupe {keep_id}")
    if keep_id in delete_ids:
        raise DuplicateCleanupError(f"Le produit conservé {keep_id} figure dans deleteIds")
    return keep_id, sorted(set(delete_ids))


def _load_group(keep_id: int, delete_ids: list[int], *, lock: bool) -> tuple[Product, list[Product]]:
    query = db.session.query(Product).filter(Product.id.in_([keep_id] + delete_ids)).order_by(Product.id)
    if lock:
        query = lock_for_update(query)
    products = {p.id: p for p in query.all()}

    keep = products.get(keep_id)
    if keep is None:
        raise DuplicateCleanupError(f"Produit conservé {keep_id} introuvable")
    missing = [pid for pid in delete_ids if pid not in products]
    if missing:
        raise DuplicateCleanupError(f"Produits introuvables: {', '.join(map(str, missing))}")

    duplicates = [products[pid] for pid in delete_ids]
    for product in duplicates:
        if normalize_name(product.name) != normalize_name(keep.name):
            raise DuplicateCleanupError(
                f"Le produit {product.id} ne porte pas le même nom que {keep.id}"
            )
    return keep, duplicates


def _consolidate_group(keep_id: int, delete_ids: list[int]) -> dict:
    def _op():
        begin_write()
        keep, duplicates = _load_group(keep_id, delete_ids, lock=True)

        moved = (
            db.session.query(SaleItem)
            .filter(SaleItem.product_id.in_(delete_ids))
            .update({SaleItem.product_id: keep.id}, synchronize_session=False)
        )
        db.session.query(ReturnItem).filter(ReturnItem.product_id.in_(delete_ids)).update(
            {ReturnItem.product_id: keep.id}, synchronize_session=False
        )
        db.session.query(StockMovementItem).filter(StockMovementItem.product_id.in_(delete_ids)).update(
            {StockMovementItem.product_id: keep.id}, synchronize_session=False
        )
        db.session.query(StockMovementItem).filter(
            StockMovementItem.destination_product_id.in_(delete_ids)
        ).update({StockMovementItem.destination_product_id: keep.id}, synchronize_session=False)
        db.session.query(Barcode).filter(Barcode.product_id.in_(delete_ids)).update(
            {Barcode.product_id: keep.id}, synchronize_session=False
        )

        if keep.stock_id is not None:
            folded = sum(p.quantity for p in duplicates if p.stock_id == keep.stock_id)
            keep.quantity += folded

        db.session.flush()
        db.session.query(Product).filter(Product.id.in_(delete_ids)).delete(synchronize_session=False)
        db.session.expire_all()

        return {"keepId": keep_id, "deletedIds": delete_ids, "saleItemsMoved": moved}

    result = run_with_retry(_op)
    commit_with_retry()
    return result


def cleanup_duplicates(plan=None, *, dry_run: bool = True) -> dict:
    """
    Execute (or simulate) a consolidation plan.

    Args:
        plan: list of {keepId, deleteIds, ...}; None uses find_duplicates()
        dry_run: report what would happen without writing

    Returns:
        {"dryRun", "groupsProcessed", "productsDeleted", "saleItemsMoved",
         "results", "errors"}

    Live groups are committed one by one; callers must not hold
    uncommitted work in the session.
    """
    if plan is None:
        plan = find_duplicates()["groups"]
    if not isinstance(plan, list):
        raise DuplicateCleanupError("cleanupPlan doit être une liste")

    parsed = [_parse_group(raw) for raw in plan]

    results, errors = [], []
    for keep_id, delete_ids in parsed:
        if dry_run:
            try:
                _load_group(keep_id, delete_ids, lock=False)
            except DuplicateCleanupError as e:
                errors.append({"keepId": keep_id, "error": e.message})
                continue
            would_move = (
                db.session.query(func.count(SaleItem.id))
                .filter(SaleItem.product_id.in_(delete_ids))
                .scalar()
            )
            results.append({"keepId": keep_id, "deletedIds": delete_ids, "saleItemsMoved": int(would_move)})
            continue

        try:
            result = _consolidate_group(keep_id, delete_ids)
        except DuplicateCleanupError as e:
            db.session.rollback()
            logger.warning("Duplicate group %s skipped: %s", keep_id, e.message)
            errors.append({"keepId": keep_id, "error": e.message})
            continue
        logger.info(
            "Consolidated %s duplicates into product %s (%s sale items moved)",
            len(delete_ids), keep_id, result["saleItemsMoved"],
        )
        results.append(result)

    return {
        "dryRun": dry_run,
        "groupsProcessed": len(results),
        "productsDeleted": sum(len(r["deletedIds"]) for r in results),
        "saleItemsMoved": sum(r["saleItemsMoved"] for r in results),
        "results": results,
        "errors": errors,
    }
