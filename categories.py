from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends
from pymongo.database import Database

from database import get_db, get_documents
from utils import parse_object_id, serialize_doc

router = APIRouter(tags=["categories"])


class ReferenceCheckError(ValueError):
    """A submitted category/subcategory reference does not hold."""


def resolve_category(db: Database, category_id: Optional[str],
                     subcategory_ids: Optional[List[str]] = None) -> Tuple[dict, List[dict]]:
    """Load the category and check every subcategory belongs to it."""
    oid = parse_object_id(category_id)
    category = db["categories"].find_one({"_id": oid}) if oid else None
    if not category:
        raise ReferenceCheckError("Category not found")

    subcategories = []
    for sub_id in subcategory_ids or []:
        sub_oid = parse_object_id(sub_id)
        sub = db["subcategories"].find_one({"_id": sub_oid}) if sub_oid else None
        if not sub:
            raise ReferenceCheckError("Subcategory not found")
        if sub.get("parent") != category["_id"]:
            raise ReferenceCheckError(f"Subcategory {sub.get('name')} does not belong to category {category.get('name')}")
        subcategories.append(sub)
    return category, subcategories


@router.get("/api/categories")
def list_categories(db: Database = Depends(get_db)):
    categories = get_documents(db, "categories", sort=[("name", 1)])
    subs_by_parent = {}
    for sub in get_documents(db, "subcategories", sort=[("name", 1)]):
        subs_by_parent.setdefault(sub.get("parent"), []).append(sub)
    items = []
    for category in categories:
        item = serialize_doc(category)
        item["subCategories"] = serialize_doc(subs_by_parent.get(category["_id"], []))
        items.append(item)
    return {"success": True, "categories": items}
