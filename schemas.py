"""
Database Schemas

MongoDB collection schemas and request bodies as Pydantic models.
Field names follow the documents the storefront shares (camelCase,
createdAt/updatedAt timestamps):
- Vendor -> "vendors" collection
- Category / SubCategory -> "categories" / "subcategories"
- Blog -> "blogs" collection
- Product -> "products" collection
- Order -> "orders" collection (read only here)
"""

from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

BlogStatus = Literal["draft", "published", "archived"]


# ---------- Vendor ----------

class Vendor(BaseModel):
    """
    Vendor accounts
    Collection name: "vendors"
    """
    name: str = Field(..., description="Shop or vendor display name")
    email: EmailStr = Field(..., description="Unique email address")
    password: str = Field(..., description="BCrypt password hash")
    phone: Optional[str] = None
    address: Optional[str] = None
    zipCode: Optional[str] = None
    description: Optional[str] = None
    verified: bool = Field(False, description="Set by an admin once the vendor is approved")
    role: str = "vendor"


class VendorSignup(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    address: Optional[str] = None
    zipCode: Optional[str] = None
    description: Optional[str] = None


class VendorSignin(BaseModel):
    email: EmailStr
    password: str


class PublicVendor(BaseModel):
    id: str
    name: str
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    zipCode: Optional[str] = None
    description: Optional[str] = None
    verified: bool = False


# ---------- Categories ----------

class Category(BaseModel):
    """
    Product and blog categories
    Collection name: "categories"
    """
    name: str
    slug: str


class SubCategory(BaseModel):
    """
    Subcategories, each owned by one category
    Collection name: "subcategories"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    slug: str
    parent: ObjectId = Field(..., description="Parent category _id")


# ---------- Blog ----------

class FeaturedImage(BaseModel):
    url: str
    public_id: str


class BlogInput(BaseModel):
    """Validated blog form fields, shared by create and update."""
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    excerpt: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1)
    subCategory: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    status: BlogStatus = "draft"
    featured: bool = False
    seoTitle: Optional[str] = Field(None, max_length=60)
    seoDescription: Optional[str] = Field(None, max_length=160)

    @field_validator("title", "content", "excerpt", "category")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("subCategory", "seoTitle", "seoDescription")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        tags = []
        for tag in v:
            tag = tag.strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags


class Blog(BaseModel):
    """
    Vendor blog posts
    Collection name: "blogs"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str
    slug: str
    content: str
    excerpt: str = Field(..., max_length=200)
    featuredImage: FeaturedImage
    author: ObjectId = Field(..., description="Vendor _id")
    authorName: str
    category: ObjectId = Field(..., description="Category _id")
    categoryName: str
    subCategory: Optional[ObjectId] = None
    subCategoryName: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    status: BlogStatus = "draft"
    featured: bool = False
    views: int = 0
    likes: int = 0
    publishedAt: Optional[datetime] = None
    seoTitle: Optional[str] = Field(None, max_length=60)
    seoDescription: Optional[str] = Field(None, max_length=160)


# ---------- Product ----------

class ImageRef(BaseModel):
    url: str
    public_id: Optional[str] = None


class Color(BaseModel):
    color: str = ""
    image: Optional[str] = None


class SizeEntry(BaseModel):
    size: str = Field(..., min_length=1)
    qty: int = Field(..., ge=0)
    price: float = Field(..., ge=0)
    sold: int = Field(0, ge=0)


class NameValue(BaseModel):
    name: str
    value: str


class NameOnly(BaseModel):
    name: str


class Question(BaseModel):
    question: str
    answer: str


class SubProduct(BaseModel):
    sku: str
    images: List[ImageRef] = Field(default_factory=list)
    description_images: List[ImageRef] = Field(default_factory=list)
    color: Color = Field(default_factory=Color)
    sizes: List[SizeEntry] = Field(default_factory=list)
    discount: float = Field(0, ge=0, le=100)
    sold: int = 0


class ProductCreate(BaseModel):
    """
    Create a product, or append a sub-product when ``parent`` is given.
    Only the sub-product fields are used in the latter case.
    """
    parent: Optional[str] = None
    sku: str = Field(..., min_length=1)
    color: Color = Field(default_factory=Color)
    images: List[ImageRef] = Field(default_factory=list)
    sizes: List[SizeEntry] = Field(..., min_length=1)
    discount: float = Field(0, ge=0, le=100)
    name: Optional[str] = None
    description: Optional[str] = None
    longDescription: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    subCategories: List[str] = Field(default_factory=list)
    details: List[NameValue] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    benefits: List[NameOnly] = Field(default_factory=list)
    ingredients: List[NameOnly] = Field(default_factory=list)

    @model_validator(mode="after")
    def require_parent_fields(self):
        if not self.parent:
            missing = [f for f in ("name", "description", "category") if not getattr(self, f)]
            if missing:
                raise ValueError(f"Missing required fields: {', '.join(missing)}")
        return self


class ProductUpdate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    longDescription: Optional[str] = None
    brand: Optional[str] = None
    sku: str = Field(..., min_length=1)
    color: str = ""
    sizes: List[SizeEntry] = Field(..., min_length=1)
    discount: float = Field(0, ge=0, le=100)
    details: List[NameValue] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    benefits: List[NameOnly] = Field(default_factory=list)
    ingredients: List[NameOnly] = Field(default_factory=list)


class Product(BaseModel):
    """
    Vendor products
    Collection name: "products"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    longDescription: Optional[str] = None
    brand: Optional[str] = None
    slug: str
    category: ObjectId
    subCategories: List[ObjectId] = Field(default_factory=list)
    details: List[NameValue] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    benefits: List[NameOnly] = Field(default_factory=list)
    ingredients: List[NameOnly] = Field(default_factory=list)
    rating: float = 0
    numReviews: int = 0
    featured: bool = False
    vendor: dict = Field(..., description="Snapshot {_id, name, email} of the owning vendor")
    subProducts: List[SubProduct] = Field(default_factory=list)


# ---------- Orders ----------

class OrderLine(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    product: ObjectId
    name: str
    vendor: dict = Field(default_factory=dict)
    size: Optional[str] = None
    qty: int = 1
    price: float = 0
    image: Optional[str] = None


class Order(BaseModel):
    """
    Customer orders, written by the storefront
    Collection name: "orders"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user: ObjectId
    products: List[OrderLine] = Field(default_factory=list)
    total: float = 0
    isPaid: bool = False
    status: str = "Not Processed"
