import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db
from schemas import PublicVendor, Vendor, VendorSignin, VendorSignup
from utils import action_error, parse_object_id

logger = logging.getLogger(__name__)

# Security settings
SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-key-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))
COOKIE_NAME = "vendor_token"
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() in ("1", "true", "yes")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

router = APIRouter(tags=["vendor"])


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(plain_password, password_hash)
    except ValueError:
        # Not a hash passlib recognises
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def set_session_cookie(response: Response, vendor_id: str) -> None:
    response.set_cookie(
        COOKIE_NAME,
        create_access_token({"id": vendor_id}),
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(COOKIE_NAME, path="/", secure=COOKIE_SECURE, httponly=True, samesite="lax")


class StaleSessionError(Exception):
    """The cookie holds a token that can no longer identify a vendor."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


async def stale_session_handler(request: Request, exc: StaleSessionError) -> JSONResponse:
    response = JSONResponse(status_code=401, content={"detail": exc.detail})
    clear_session_cookie(response)
    return response


def to_public_vendor(doc: dict) -> PublicVendor:
    return PublicVendor(
        id=str(doc.get("_id")),
        name=doc.get("name", ""),
        email=doc.get("email"),
        phone=doc.get("phone"),
        address=doc.get("address"),
        zipCode=doc.get("zipCode"),
        description=doc.get("description"),
        verified=bool(doc.get("verified", False)),
    )


# Auth helpers
def get_current_vendor(request: Request, db: Database = Depends(get_db)) -> dict:
    """Resolve the vendor behind the ``vendor_token`` cookie, clearing the cookie when it is stale."""
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Vendor token is invalid!")
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise StaleSessionError("Invalid token!")

    vendor_id = parse_object_id(payload.get("id"))
    vendor = db["vendors"].find_one({"_id": vendor_id}) if vendor_id else None
    if not vendor:
        raise StaleSessionError("Vendor doesn't exist.")
    return vendor


def get_verified_vendor(vendor: dict = Depends(get_current_vendor)) -> dict:
    if not vendor.get("verified"):
        raise HTTPException(status_code=403, detail="Vendor was not verified!")
    return vendor


@router.post("/api/vendor/auth/signup", status_code=201)
def signup(payload: VendorSignup, response: Response, db: Database = Depends(get_db)):
    email = payload.email.lower()
    if db["vendors"].find_one({"email": email}):
        return action_error("Email is already registered")

    vendor = Vendor(
        **payload.model_dump(exclude={"email", "password"}),
        email=email,
        password=get_password_hash(payload.password),
    )
    try:
        vendor_id = create_document(db, "vendors", vendor)
    except DuplicateKeyError:
        return action_error("Email is already registered")
    logger.info("Vendor %s signed up", vendor_id)

    set_session_cookie(response, vendor_id)
    doc = db["vendors"].find_one({"_id": parse_object_id(vendor_id)})
    return {
        "success": True,
        "message": "Vendor registered. An admin will verify your account.",
        "vendor": to_public_vendor(doc),
    }


@router.post("/api/vendor/auth/signin")
def signin(payload: VendorSignin, response: Response, db: Database = Depends(get_db)):
    vendor = db["vendors"].find_one({"email": payload.email.lower()})
    if not vendor or not verify_password(payload.password, vendor.get("password", "")):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    set_session_cookie(response, str(vendor["_id"]))
    return {"success": True, "message": "Signed in successfully.", "vendor": to_public_vendor(vendor)}


@router.post("/api/vendor/auth/logout")
def logout(response: Response):
    clear_session_cookie(response)
    return {"success": True, "message": "Logged out."}


@router.get("/api/vendor/me")
def me(vendor: dict = Depends(get_current_vendor)):
    return {
        "success": True,
        "message": "Successfully found vendor on database.",
        "vendor": to_public_vendor(vendor),
    }


def _find_vendor(db: Database, vendor_id: str) -> Optional[dict]:
    oid = parse_object_id(vendor_id)
    return db["vendors"].find_one({"_id": oid}) if oid else None


@router.get("/api/vendors/{vendor_id}")
def get_single_vendor(vendor_id: str, db: Database = Depends(get_db)):
    vendor = _find_vendor(db, vendor_id)
    if not vendor:
        return action_error("Vendor doesn't exist.", 404)
    return {"success": True, "message": "Successfully vendor found", "vendor": to_public_vendor(vendor)}


@router.get("/api/vendors/{vendor_id}/check")
def check_vendor(vendor_id: str, db: Database = Depends(get_db)):
    if not _find_vendor(db, vendor_id):
        return action_error("Vendor not found.", 404)
    return {"success": True, "message": "Vendor found"}


@router.get("/api/vendors/{vendor_id}/verified")
def check_vendor_verified(vendor_id: str, db: Database = Depends(get_db)):
    vendor = _find_vendor(db, vendor_id)
    if not vendor:
        return action_error("Vendor not found.", 404)
    if vendor.get("verified"):
        return {"success": True, "message": "Vendor was verified."}
    return {"success": False, "message": "Vendor was not verified!"}
