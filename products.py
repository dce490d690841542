"""
Vendor product actions

Products embed a snapshot of their vendor (``vendor._id``), which scopes
every query here. A product holds one or more sub-products (styles), each
with its own sku, images, color, sizes and discount.
"""

import logging
from datetime import datetime, timezone
from typing import List

from bson import ObjectId
from fastapi import APIRouter, Depends, File, Query, UploadFile
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import get_verified_vendor
from cache_utils import ProductCacheInvalidation
from categories import ReferenceCheckError, resolve_category
from database import create_document, get_db
from schemas import Product, ProductCreate, ProductUpdate, SubProduct
from uploads import PRODUCT_IMAGES_TAG, ImageUploadError, destroy_image, upload_image
from utils import action_error, parse_object_id, serialize_doc, unique_slug

logger = logging.getLogger(__name__)

router = APIRouter(tags=["products"])


def _find_owned(db: Database, product_id: str, vendor: dict):
    oid = parse_object_id(product_id)
    if oid is None:
        return None
    return db["products"].find_one({"_id": oid, "vendor._id": vendor["_id"]})


def _sub_product_doc(payload: ProductCreate) -> dict:
    sub = SubProduct(
        sku=payload.sku,
        color=payload.color,
        images=payload.images,
        sizes=payload.sizes,
        discount=payload.discount,
    ).model_dump()
    sub["_id"] = ObjectId()
    return sub


def discounted_price(price: float, discount: float) -> float:
    if discount > 0:
        return round(price - price * discount / 100, 2)
    return price


@router.post("/api/vendor/products", status_code=201)
def create_product(payload: ProductCreate,
                   vendor: dict = Depends(get_verified_vendor),
                   db: Database = Depends(get_db)):
    """Create a product, or append a sub-product to one of the vendor's products when ``parent`` is set."""
    if payload.parent:
        parent = _find_owned(db, payload.parent, vendor)
        if not parent:
            return action_error("Parent not found!", 404)
        try:
            db["products"].update_one(
                {"_id": parent["_id"]},
                {"$push": {"subProducts": _sub_product_doc(payload)},
                 "$set": {"updatedAt": datetime.now(timezone.utc)}},
            )
        except Exception:
            logger.exception("Adding sub-product to %s failed", parent["_id"])
            return action_error("Failed to add sub-product", 500)
        ProductCacheInvalidation.smart_invalidation(parent)
        return {"success": True, "message": "Sub-product added successfully."}

    try:
        category, subs = resolve_category(db, payload.category, payload.subCategories)
    except ReferenceCheckError as exc:
        return action_error(str(exc))

    try:
        product = Product(
            name=payload.name,
            description=payload.description,
            longDescription=payload.longDescription,
            brand=payload.brand,
            slug=unique_slug(db["products"], payload.name),
            category=category["_id"],
            subCategories=[s["_id"] for s in subs],
            details=payload.details,
            questions=payload.questions,
            benefits=payload.benefits,
            ingredients=payload.ingredients,
            vendor={"_id": vendor["_id"], "name": vendor.get("name"), "email": vendor.get("email")},
        )
        doc = product.model_dump(exclude_none=True)
        doc["subProducts"] = [_sub_product_doc(payload)]
        product_id = create_document(db, "products", doc)
    except DuplicateKeyError:
        return action_error("A product with this name was created at the same time, please retry", 409)
    except Exception:
        logger.exception("Product creation failed for vendor %s", vendor["_id"])
        return action_error("Failed to create product", 500)

    logger.info("Vendor %s created product %s", vendor["_id"], product_id)
    ProductCacheInvalidation.new_arrivals()
    ProductCacheInvalidation.all_products()
    return {"success": True, "message": "Product created successfully.", "id": product_id}


@router.get("/api/vendor/products")
def get_vendor_products(vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    products = list(db["products"].find({"vendor._id": vendor["_id"]}).sort("updatedAt", -1))
    category_ids = list({p.get("category") for p in products if p.get("category")})
    categories = {c["_id"]: c for c in db["categories"].find({"_id": {"$in": category_ids}})}
    for p in products:
        if p.get("category") in categories:
            p["category"] = categories[p["category"]]
    return {"success": True, "products": serialize_doc(products)}


@router.get("/api/vendor/products/parents")
def get_parents_and_categories(vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    parents = db["products"].find({"vendor._id": vendor["_id"]}, {"name": 1, "subProducts": 1})
    categories = db["categories"].find()
    return {
        "success": True,
        "parents": serialize_doc(list(parents)),
        "categories": serialize_doc(list(categories)),
    }


@router.get("/api/vendor/products/{product_id}")
def get_entire_product_by_id(product_id: str,
                             vendor: dict = Depends(get_verified_vendor),
                             db: Database = Depends(get_db)):
    product = _find_owned(db, product_id, vendor)
    if not product:
        return action_error("Product not found with this Id", 404)
    return {"success": True, "message": "Successfully found product", "product": serialize_doc(product)}


@router.get("/api/vendor/products/{product_id}/view")
def get_single_product_by_id(product_id: str,
                             style: int = Query(0, ge=0),
                             size: int = Query(0, ge=0),
                             vendor: dict = Depends(get_verified_vendor),
                             db: Database = Depends(get_db)):
    """Price view of one style/size of a product."""
    product = _find_owned(db, product_id, vendor)
    if not product:
        return action_error("Product not found with this Id", 404)
    sub_products = product.get("subProducts") or []
    if style >= len(sub_products):
        return action_error("Style not found for this product")
    sub = sub_products[style]
    sizes = sub.get("sizes") or []
    if size >= len(sizes):
        return action_error("Size not found for this style")

    discount = sub.get("discount") or 0
    price_before = sizes[size].get("price") or 0
    return serialize_doc({
        "success": True,
        "_id": product["_id"],
        "style": style,
        "name": product.get("name"),
        "discount": discount,
        "sizes": sizes,
        "description": product.get("description"),
        "longDescription": product.get("longDescription"),
        "slug": product.get("slug"),
        "sku": sub.get("sku"),
        "brand": product.get("brand"),
        "category": product.get("category"),
        "subCategories": product.get("subCategories", []),
        "images": sub.get("images", []),
        "color": sub.get("color"),
        "size": sizes[size].get("size"),
        "price": discounted_price(price_before, discount),
        "priceBefore": price_before,
        "vendor": product.get("vendor"),
        "quantity": sizes[size].get("qty"),
    })


@router.put("/api/vendor/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate,
                   vendor: dict = Depends(get_verified_vendor),
                   db: Database = Depends(get_db)):
    product = _find_owned(db, product_id, vendor)
    if not product:
        return action_error("Product not found or you don't have permission to edit this product.", 404)
    sub_products = product.get("subProducts") or []
    if not sub_products:
        return action_error("Product has no sub-products to update")

    first = sub_products[0]
    previous_sold = {s.get("size"): s.get("sold") or 0 for s in first.get("sizes") or []}
    sizes = []
    for entry in payload.sizes:
        row = entry.model_dump()
        # Sales counters are owned by checkout, keep them across edits
        row["sold"] = max(row["sold"], previous_sold.get(row["size"], 0))
        sizes.append(row)
    first["sku"] = payload.sku
    first["color"] = {**(first.get("color") or {}), "color": payload.color}
    first["sizes"] = sizes
    first["discount"] = payload.discount

    updates = {
        "name": payload.name,
        "description": payload.description,
        "longDescription": payload.longDescription,
        "brand": payload.brand,
        "details": [d.model_dump() for d in payload.details],
        "questions": [q.model_dump() for q in payload.questions],
        "benefits": [b.model_dump() for b in payload.benefits],
        "ingredients": [i.model_dump() for i in payload.ingredients],
        "subProducts": sub_products,
        "updatedAt": datetime.now(timezone.utc),
    }
    if payload.name != product.get("name"):
        updates["slug"] = unique_slug(db["products"], payload.name, exclude_id=product["_id"])

    try:
        db["products"].update_one({"_id": product["_id"], "vendor._id": vendor["_id"]}, {"$set": updates})
    except DuplicateKeyError:
        return action_error("A product with this name was saved at the same time, please retry", 409)
    except Exception:
        logger.exception("Product update failed for %s", product["_id"])
        return action_error("Failed to update product", 500)

    updated = db["products"].find_one({"_id": product["_id"]})
    ProductCacheInvalidation.smart_invalidation(updated)
    ProductCacheInvalidation.single_product()
    return {"success": True, "message": "Product updated successfully", "product": serialize_doc(updated)}


@router.delete("/api/vendor/products/{product_id}")
def delete_product(product_id: str,
                   vendor: dict = Depends(get_verified_vendor),
                   db: Database = Depends(get_db)):
    product = _find_owned(db, product_id, vendor)
    if not product:
        return action_error("Product not found with this Id!", 404)
    try:
        db["products"].delete_one({"_id": product["_id"], "vendor._id": vendor["_id"]})
    except Exception:
        logger.exception("Product delete failed for %s", product["_id"])
        return action_error("Failed to delete product", 500)

    for sub in product.get("subProducts") or []:
        for image in sub.get("images") or []:
            if isinstance(image, dict):
                destroy_image(image.get("public_id"))

    if product.get("featured"):
        ProductCacheInvalidation.featured_products()
    if any((sub.get("sold") or 0) > 0 for sub in product.get("subProducts") or []):
        ProductCacheInvalidation.top_selling()
    ProductCacheInvalidation.new_arrivals()
    ProductCacheInvalidation.all_products()
    logger.info("Vendor %s deleted product %s", vendor["_id"], product["_id"])
    return {"success": True, "message": "Product Successfully deleted!"}


@router.post("/api/vendor/uploads/images", status_code=201)
def upload_product_images(files: List[UploadFile] = File(...),
                          vendor: dict = Depends(get_verified_vendor)):
    images = []
    for f in files:
        try:
            images.append(upload_image(f.file, f.filename or "image", PRODUCT_IMAGES_TAG))
        except ImageUploadError as exc:
            for uploaded in images:
                destroy_image(uploaded["public_id"])
            return action_error(str(exc), 502)
    return {"success": True, "images": images}
