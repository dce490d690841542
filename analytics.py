"""
Sales and inventory analytics for the vendor dashboard.

Orders are written by the storefront; a vendor's orders are the ones with at
least one line whose ``vendor._id`` is the vendor. Product figures come from
the size rows of every sub-product (``qty`` in stock, ``sold``, ``price``).
"""

import os
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends
from pymongo.collection import Collection
from pymongo.database import Database

from auth import get_verified_vendor
from database import get_db
from utils import as_utc, serialize_doc

LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", "5"))
WINDOW_DAYS = 28

router = APIRouter(tags=["analytics"])


def last_12_months(collection: Collection, query: dict, now: Optional[datetime] = None) -> List[dict]:
    """
    Document counts for twelve consecutive 28-day windows, oldest first.
    The newest window ends at the start of tomorrow (UTC), so today's
    documents are included.
    """
    now = now or datetime.now(timezone.utc)
    anchor = datetime(now.year, now.month, now.day, tzinfo=timezone.utc) + timedelta(days=1)
    series = []
    for i in range(11, -1, -1):
        end = anchor - timedelta(days=i * WINDOW_DAYS)
        start = end - timedelta(days=WINDOW_DAYS)
        count = collection.count_documents({**query, "createdAt": {"$gte": start, "$lt": end}})
        series.append({"month": f"{end:%b} {end.day}, {end.year}", "count": count})
    return series


def _vendor_products(db: Database, vendor: dict) -> List[dict]:
    return list(db["products"].find({"vendor._id": vendor["_id"]}))


def _iter_sizes(product: dict):
    for sub in product.get("subProducts") or []:
        for size in sub.get("sizes") or []:
            if size:
                yield sub, size


def _total_sold(product: dict) -> int:
    return sum(int(sub.get("sold") or 0) for sub in product.get("subProducts") or [])


def _by_sales(products: List[dict]) -> List[dict]:
    return sorted(products, key=_total_sold, reverse=True)


def stock_status(stock: int) -> str:
    if stock > 10:
        return "In Stock"
    if stock > 0:
        return "Low Stock"
    return "Out of Stock"


def performance(total_sold: int) -> str:
    if total_sold > 50:
        return "Excellent"
    if total_sold > 20:
        return "Good"
    if total_sold > 5:
        return "Average"
    return "Poor"


def size_stock_status(stock: int) -> str:
    if stock > 50:
        return "High Stock"
    if stock > 20:
        return "Medium Stock"
    if stock > 0:
        return "Low Stock"
    return "Out of Stock"


def popularity(total_sold: int) -> str:
    if total_sold > 100:
        return "Very Popular"
    if total_sold > 50:
        return "Popular"
    if total_sold > 10:
        return "Moderate"
    return "Low Demand"


def _first_image_url(sub: dict) -> str:
    images = sub.get("images") or []
    if not images:
        return ""
    first = images[0]
    return str(first.get("url", "")) if isinstance(first, dict) else str(first)


# ---------- Analytics ----------

@router.get("/api/vendor/analytics/orders")
def get_order_analytics(vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    return {"orders": last_12_months(db["orders"], {"products.vendor._id": vendor["_id"]})}


@router.get("/api/vendor/analytics/products")
def get_product_analytics(vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    return {"products": last_12_months(db["products"], {"vendor._id": vendor["_id"]})}


@router.get("/api/vendor/analytics/sizes")
def size_analytics(vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    totals = {}
    for product in _vendor_products(db, vendor):
        for _, size in _iter_sizes(product):
            name = str(size.get("size"))
            totals[name] = totals.get(name, 0) + int(size.get("sold") or 0)
    return [{"name": name, "value": value} for name, value in totals.items()]


@router.get("/api/vendor/analytics/top-selling")
def get_top_selling_products(vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    top = _by_sales(_vendor_products(db, vendor))[:5]
    return [{"name": str(p.get("name") or ""), "value": _total_sold(p)} for p in top]


@router.get("/api/vendor/analytics/top-selling/detailed")
def get_detailed_top_selling_products(vendor: dict = Depends(get_verified_vendor),
                                      db: Database = Depends(get_db)):
    top = _by_sales(_vendor_products(db, vendor))[:10]
    category_ids = list({p.get("category") for p in top if p.get("category")})
    names = {c["_id"]: c.get("name") for c in db["categories"].find({"_id": {"$in": category_ids}}, {"name": 1})}

    rows = []
    for product in top:
        subs = product.get("subProducts") or []
        first = subs[0] if subs else {}
        total_sold = _total_sold(product)
        revenue = sum((size.get("sold") or 0) * (size.get("price") or 0) for _, size in _iter_sizes(product))
        stock = sum(int(size.get("qty") or 0) for _, size in _iter_sizes(product))
        first_sizes = first.get("sizes") or []
        average_price = (first_sizes[0].get("price") or 0) if first_sizes else 0
        rows.append({
            "id": str(product["_id"]),
            "name": str(product.get("name") or ""),
            "category": str(names.get(product.get("category")) or "N/A"),
            "image": _first_image_url(first),
            "totalSold": total_sold,
            "totalRevenue": f"{revenue:.2f}",
            "averagePrice": f"{average_price:.2f}",
            "stockLevel": stock,
            "status": stock_status(stock),
            "performance": performance(total_sold),
        })
    return rows


@router.get("/api/vendor/analytics/sizes/detailed")
def get_detailed_size_analytics(vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    stats = {}
    for product in _vendor_products(db, vendor):
        for _, size in _iter_sizes(product):
            name = str(size.get("size"))
            row = stats.setdefault(name, {"totalSold": 0, "totalStock": 0, "totalRevenue": 0.0,
                                          "productCount": 0, "priceSum": 0.0})
            sold = int(size.get("sold") or 0)
            price = float(size.get("price") or 0)
            row["totalSold"] += sold
            row["totalStock"] += int(size.get("qty") or 0)
            row["totalRevenue"] += sold * price
            row["productCount"] += 1
            row["priceSum"] += price

    return [
        {
            "size": name,
            "totalSold": row["totalSold"],
            "totalStock": row["totalStock"],
            "totalRevenue": f"{row['totalRevenue']:.2f}",
            "productCount": row["productCount"],
            "averagePrice": f"{row['priceSum'] / row['productCount']:.2f}",
            "stockStatus": size_stock_status(row["totalStock"]),
            "popularity": popularity(row["totalSold"]),
        }
        for name, row in stats.items()
    ]


# ---------- Dashboard ----------

def _vendor_orders(db: Database, vendor: dict) -> List[dict]:
    return list(db["orders"].find({"products.vendor._id": vendor["_id"]}).sort("createdAt", -1))


def month_start(value: datetime) -> datetime:
    return datetime(value.year, value.month, 1, tzinfo=timezone.utc)


def sales_summary(orders: List[dict], now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    this_month = month_start(now)
    last_month = month_start(this_month - timedelta(days=1))

    total = current = previous = 0.0
    for order in orders:
        amount = float(order.get("total") or 0)
        total += amount
        created = as_utc(order.get("createdAt"))
        if created is None:
            continue
        if created >= this_month:
            current += amount
        elif created >= last_month:
            previous += amount

    if previous:
        growth = (current - previous) / previous * 100
    else:
        growth = 100.0 if current else 0.0
    return {
        "totalSales": round(total, 2),
        "currentMonthSales": round(current, 2),
        "lastMonthSales": round(previous, 2),
        "growthPercentage": round(growth, 2),
    }


def _stock_rows(products: List[dict], matches) -> List[dict]:
    rows = []
    for product in products:
        for sub, size in _iter_sizes(product):
            qty = int(size.get("qty") or 0)
            if matches(qty):
                rows.append({
                    "productId": str(product["_id"]),
                    "name": product.get("name"),
                    "sku": sub.get("sku"),
                    "size": size.get("size"),
                    "qty": qty,
                })
    return rows


@router.get("/api/vendor/dashboard")
def get_dashboard_data(vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    orders = _vendor_orders(db, vendor)
    products = list(db["products"].find({"vendor._id": vendor["_id"]}).sort("createdAt", -1))
    total_earnings = sum(float(o.get("total") or 0) for o in orders)
    unpaid = sum(float(o.get("total") or 0) for o in orders if not o.get("isPaid"))
    return {
        "orders": serialize_doc(orders),
        "products": serialize_doc(products),
        "totalOrders": len(orders),
        "totalProducts": len(products),
        "totalEarnings": round(total_earnings, 2),
        "unpaidAmount": round(unpaid, 2),
    }


@router.get("/api/vendor/dashboard/sales")
def calculate_total_orders(vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    return sales_summary(_vendor_orders(db, vendor))


@router.get("/api/vendor/dashboard/low-stock")
def get_low_stock_products(vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    rows = _stock_rows(_vendor_products(db, vendor), lambda qty: 0 < qty < LOW_STOCK_THRESHOLD)
    return {"lowStockProducts": rows}


@router.get("/api/vendor/dashboard/out-of-stock")
def get_out_of_stock_products(vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    rows = _stock_rows(_vendor_products(db, vendor), lambda qty: qty <= 0)
    return {"outOfStockProducts": rows}
