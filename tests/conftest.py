from datetime import datetime, timezone

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import blogs
import cache_utils
import products
from auth import COOKIE_NAME, create_access_token, get_password_hash
from database import create_document, get_db
from main import app
from schemas import Category, SubCategory

PASSWORD = "secret-pass"


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def db():
    return mongomock.MongoClient()["vibecart_test"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def cache_calls(monkeypatch):
    calls = []

    def fake_invalidate(type, tag=None):
        calls.append(tag or type)
        return True

    monkeypatch.setattr(cache_utils, "invalidate_cache", fake_invalidate)
    return calls


@pytest.fixture
def images(monkeypatch):
    """Stand-in image host; records uploads and deletes."""
    state = {"uploaded": [], "destroyed": [], "fail": False}

    def fake_upload(file, filename, tag):
        if state["fail"]:
            raise blogs.ImageUploadError("Failed to upload image")
        public_id = f"{tag}/{filename}-{len(state['uploaded'])}"
        state["uploaded"].append(public_id)
        return {"url": f"https://img.example/{public_id}", "public_id": public_id}

    def fake_destroy(public_id):
        if public_id:
            state["destroyed"].append(public_id)
        return True

    for module in (blogs, products):
        monkeypatch.setattr(module, "upload_image", fake_upload)
        monkeypatch.setattr(module, "destroy_image", fake_destroy)
    return state


def make_vendor(db, email="shop@example.com", verified=True, name="Aroma Shop"):
    now = datetime.now(timezone.utc)
    doc = {
        "name": name,
        "email": email,
        "password": get_password_hash(PASSWORD),
        "verified": verified,
        "role": "vendor",
        "createdAt": now,
        "updatedAt": now,
    }
    doc["_id"] = db["vendors"].insert_one(doc).inserted_id
    return doc


def login(client, vendor):
    client.cookies.set(COOKIE_NAME, create_access_token({"id": str(vendor["_id"])}))


@pytest.fixture
def vendor(db):
    return make_vendor(db)


@pytest.fixture
def other_vendor(db):
    return make_vendor(db, email="rival@example.com", name="Rival Shop")


@pytest.fixture
def vendor_client(client, vendor):
    login(client, vendor)
    return client


@pytest.fixture
def catalog(db):
    """Two categories, each with one subcategory."""
    beauty = ObjectId(create_document(db, "categories", Category(name="Beauty", slug="beauty")))
    fashion = ObjectId(create_document(db, "categories", Category(name="Fashion", slug="fashion")))
    skincare = ObjectId(create_document(db, "subcategories", SubCategory(name="Skincare", slug="skincare", parent=beauty)))
    shoes = ObjectId(create_document(db, "subcategories", SubCategory(name="Shoes", slug="shoes", parent=fashion)))
    return {"beauty": beauty, "fashion": fashion, "skincare": skincare, "shoes": shoes}
