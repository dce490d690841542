"""
Vendor blog actions

Every query is scoped to the signed-in vendor (``author``). Mutations follow
the same chain: validate, write one document, invalidate the storefront
caches, answer with a ``{success, message}`` envelope.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import get_verified_vendor
from cache_utils import BlogCacheInvalidation
from categories import ReferenceCheckError, resolve_category
from database import create_document, get_db
from schemas import Blog, BlogInput, FeaturedImage
from uploads import BLOG_IMAGES_TAG, ImageUploadError, destroy_image, upload_image
from utils import action_error, parse_object_id, serialize_doc, unique_slug, validation_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/vendor/blogs", tags=["blogs"])


def blog_form(
    title: str = Form(""),
    content: str = Form(""),
    excerpt: str = Form(""),
    category: str = Form(""),
    subCategory: Optional[str] = Form(None),
    tags: str = Form("", description="Comma separated"),
    status: str = Form("draft"),
    featured: bool = Form(False),
    seoTitle: Optional[str] = Form(None),
    seoDescription: Optional[str] = Form(None),
) -> dict:
    return {
        "title": title,
        "content": content,
        "excerpt": excerpt,
        "category": category,
        "subCategory": subCategory,
        "tags": tags.split(",") if tags else [],
        "status": status,
        "featured": featured,
        "seoTitle": seoTitle,
        "seoDescription": seoDescription,
    }



def _has_file(image: Optional[UploadFile]) -> bool:
    return image is not None and bool(image.filename)


def _discard_new_image(updates: dict) -> None:
    # The write failed, so an image uploaded for it is unreferenced
    if "featuredImage" in updates:
        destroy_image(updates["featuredImage"]["public_id"])


def _find_owned(db: Database, blog_id: str, vendor: dict) -> Optional[dict]:
    oid = parse_object_id(blog_id)
    if oid is None:
        return None
    return db["blogs"].find_one({"_id": oid, "author": vendor["_id"]})


@router.post("", status_code=201)
def create_blog(
    form: dict = Depends(blog_form),
    image: Optional[UploadFile] = File(None),
    vendor: dict = Depends(get_verified_vendor),
    db: Database = Depends(get_db),
):
    try:
        data = BlogInput(**form)
    except ValidationError as exc:
        return action_error(validation_message(exc))
    if not _has_file(image):
        return action_error("Please fill in all required fields and upload an image")

    try:
        category, subs = resolve_category(db, data.category, [data.subCategory] if data.subCategory else [])
    except ReferenceCheckError as exc:
        return action_error(str(exc))

    try:
        uploaded = upload_image(image.file, image.filename, BLOG_IMAGES_TAG)
    except ImageUploadError as exc:
        return action_error(str(exc), 502)

    sub = subs[0] if subs else None
    try:
        blog = Blog(
            title=data.title,
            slug=unique_slug(db["blogs"], data.title),
            content=data.content,
            excerpt=data.excerpt,
            featuredImage=FeaturedImage(**uploaded),
            author=vendor["_id"],
            authorName=vendor.get("name", ""),
            category=category["_id"],
            categoryName=category.get("name", ""),
            subCategory=sub["_id"] if sub else None,
            subCategoryName=sub.get("name") if sub else None,
            tags=data.tags,
            status=data.status,
            featured=data.featured,
            publishedAt=datetime.now(timezone.utc) if data.status == "published" else None,
            seoTitle=data.seoTitle,
            seoDescription=data.seoDescription,
        )
        blog_id = create_document(db, "blogs", blog)
    except DuplicateKeyError:
        destroy_image(uploaded["public_id"])
        return action_error("A blog with this title was created at the same time, please retry", 409)
    except Exception:
        logger.exception("Blog creation failed for vendor %s", vendor["_id"])
        destroy_image(uploaded["public_id"])
        return action_error("Failed to create blog", 500)

    created = db["blogs"].find_one({"_id": parse_object_id(blog_id)})
    logger.info("Vendor %s created blog %s", vendor["_id"], blog_id)
    BlogCacheInvalidation.smart_invalidation(created)
    return {"success": True, "message": "Blog created successfully!", "blog": serialize_doc(created)}


@router.get("")
def get_vendor_blogs(status: Optional[str] = None,
                     vendor: dict = Depends(get_verified_vendor),
                     db: Database = Depends(get_db)):
    query = {"author": vendor["_id"]}
    if status:
        query["status"] = status
    blogs = db["blogs"].find(query).sort("createdAt", -1)
    return {"success": True, "blogs": serialize_doc(list(blogs))}


@router.get("/analytics")
def get_blog_analytics(vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    pipeline = [
        {"$match": {"author": vendor["_id"]}},
        {"$group": {
            "_id": "$status",
            "count": {"$sum": 1},
            "views": {"$sum": "$views"},
            "likes": {"$sum": "$likes"},
        }},
    ]
    by_status = {row["_id"]: row for row in db["blogs"].aggregate(pipeline)}
    analytics = {
        "totalBlogs": sum(r["count"] for r in by_status.values()),
        "publishedBlogs": by_status.get("published", {}).get("count", 0),
        "draftBlogs": by_status.get("draft", {}).get("count", 0),
        "archivedBlogs": by_status.get("archived", {}).get("count", 0),
        "totalViews": sum(r.get("views") or 0 for r in by_status.values()),
        "totalLikes": sum(r.get("likes") or 0 for r in by_status.values()),
    }
    return {"success": True, "analytics": analytics}


@router.get("/{blog_id}")
def get_blog_by_id(blog_id: str, vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    blog = _find_owned(db, blog_id, vendor)
    if not blog:
        return action_error("Blog not found", 404)
    return {"success": True, "blog": serialize_doc(blog)}


@router.put("/{blog_id}")
def update_blog(
    blog_id: str,
    form: dict = Depends(blog_form),
    image: Optional[UploadFile] = File(None),
    vendor: dict = Depends(get_verified_vendor),
    db: Database = Depends(get_db),
):
    blog = _find_owned(db, blog_id, vendor)
    if not blog:
        return action_error("Blog not found or you don't have permission to edit it.", 404)
    try:
        data = BlogInput(**form)
    except ValidationError as exc:
        return action_error(validation_message(exc))
    try:
        category, subs = resolve_category(db, data.category, [data.subCategory] if data.subCategory else [])
    except ReferenceCheckError as exc:
        return action_error(str(exc))

    now = datetime.now(timezone.utc)
    sub = subs[0] if subs else None
    updates = {
        "title": data.title,
        "content": data.content,
        "excerpt": data.excerpt,
        "category": category["_id"],
        "categoryName": category.get("name", ""),
        "subCategory": sub["_id"] if sub else None,
        "subCategoryName": sub.get("name") if sub else None,
        "tags": data.tags,
        "status": data.status,
        "featured": data.featured,
        "seoTitle": data.seoTitle,
        "seoDescription": data.seoDescription,
        "updatedAt": now,
    }
    if data.title != blog.get("title"):
        updates["slug"] = unique_slug(db["blogs"], data.title, exclude_id=blog["_id"])
    # publishedAt is stamped once, on the first transition to published
    if data.status == "published" and not blog.get("publishedAt"):
        updates["publishedAt"] = now

    replaced_image = None
    if _has_file(image):
        try:
            updates["featuredImage"] = upload_image(image.file, image.filename, BLOG_IMAGES_TAG)
        except ImageUploadError as exc:
            return action_error(str(exc), 502)
        replaced_image = (blog.get("featuredImage") or {}).get("public_id")

    try:
        db["blogs"].update_one({"_id": blog["_id"], "author": vendor["_id"]}, {"$set": updates})
    except DuplicateKeyError:
        _discard_new_image(updates)
        return action_error("A blog with this title was saved at the same time, please retry", 409)
    except Exception:
        logger.exception("Blog update failed for %s", blog["_id"])
        _discard_new_image(updates)
        return action_error("Failed to update blog", 500)

    if replaced_image:
        destroy_image(replaced_image)

    updated = db["blogs"].find_one({"_id": blog["_id"]})
    BlogCacheInvalidation.smart_invalidation(updated)
    # Listings the blog just dropped out of
    if blog.get("featured") and not updated.get("featured"):
        BlogCacheInvalidation.featured_blogs()
    if blog.get("status") == "published" and updated.get("status") != "published":
        BlogCacheInvalidation.published_blogs()
    if blog.get("category") != updated.get("category"):
        BlogCacheInvalidation.blog_categories()

    return {"success": True, "message": "Blog updated successfully!", "blog": serialize_doc(updated)}


@router.delete("/{blog_id}")
def delete_blog(blog_id: str, vendor: dict = Depends(get_verified_vendor), db: Database = Depends(get_db)):
    blog = _find_owned(db, blog_id, vendor)
    if not blog:
        return action_error("Blog not found or you don't have permission to delete it.", 404)
    try:
        db["blogs"].delete_one({"_id": blog["_id"], "author": vendor["_id"]})
    except Exception:
        logger.exception("Blog delete failed for %s", blog["_id"])
        return action_error("Failed to delete blog", 500)

    destroy_image((blog.get("featuredImage") or {}).get("public_id"))
    BlogCacheInvalidation.smart_invalidation(blog)
    logger.info("Vendor %s deleted blog %s", vendor["_id"], blog["_id"])
    return {"success": True, "message": "Blog deleted successfully!"}
