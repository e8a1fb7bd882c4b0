"""
User and authentication routes.

Access tokens are signed JWTs sent as "Authorization: Bearer <token>".
Password reset issues a short-lived reset token whose hash is stored on the
user so it can be used once; delivering the link is left to the operator (it
is logged).
"""
from datetime import datetime, timezone
from html import escape
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import HTMLResponse
from pymongo.database import Database

from config import settings
from database import create_document, get_db, get_documents
from inventory import parse_object_id
from logging_config import get_logger
from schemas import (ForgotPasswordRequest, LoginRequest, ResetPasswordRequest,
                     SignupRequest, User, UserOut)
from security import (RESET, create_access_token, create_reset_token,
                      decode_token, hash_password, hash_token, verify_password)

logger = get_logger(__name__)

router = APIRouter()

USER_COLLECTION = "user"
MIN_PASSWORD_LENGTH = 6


def _user_out(doc: Dict[str, Any]) -> UserOut:
    return UserOut(
        id=str(doc["_id"]),
        full_name=doc.get("full_name", ""),
        username=doc.get("username", ""),
        email=doc.get("email", ""),
        role=doc.get("role", "staff"),
    )


def _check_new_password(password: str, confirm_password: str) -> None:
    if password != confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )


def seed_admin_user(db: Database) -> None:
    """Create the default admin account when it does not exist yet."""
    if db[USER_COLLECTION].find_one({"username": settings.ADMIN_USERNAME}):
        return
    admin = User(
        full_name="Admin User",
        username=settings.ADMIN_USERNAME,
        email=settings.ADMIN_EMAIL,
        password_hash=hash_password(settings.ADMIN_PASSWORD),
        role="admin",
    )
    create_document(USER_COLLECTION, admin, database=db)
    logger.info("admin_user_created", username=settings.ADMIN_USERNAME)


def get_current_user(authorization: Optional[str] = Header(None), db: Database = Depends(get_db)) -> Optional[Dict[str, Any]]:
    """Resolve the bearer token to a user document, or None."""
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    payload = decode_token(authorization.split(" ", 1)[1].strip())
    if payload is None:
        return None
    oid = parse_object_id(payload.get("sub", ""))
    if oid is None:
        return None
    return db[USER_COLLECTION].find_one({"_id": oid})


@router.post("/api/signup")
def signup(payload: SignupRequest, db: Database = Depends(get_db)):
    logger.info("signup_attempt", username=payload.username)
    _check_new_password(payload.password, payload.confirm_password)

    existing = db[USER_COLLECTION].find_one(
        {"$or": [{"username": payload.username}, {"email": payload.email}]}
    )
    if existing:
        raise HTTPException(status_code=400, detail="Username or email already exists")

    user = User(
        full_name=payload.full_name,
        username=payload.username,
        email=payload.email,
        password_hash=hash_password(payload.password),
        role="staff",
    )
    create_document(USER_COLLECTION, user, database=db)
    logger.info("user_created", username=payload.username)
    return {"success": True, "message": "Account created successfully! Please login."}


@router.post("/api/login")
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    logger.info("login_attempt", username=payload.username)
    user = db[USER_COLLECTION].find_one(
        {"$or": [{"username": payload.username}, {"email": payload.username}]}
    )
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = create_access_token(str(user["_id"]), user["username"], user.get("role", "staff"))
    return {
        "success": True,
        "message": "Login successful!",
        "token": token,
        "user": _user_out(user).model_dump(),
    }


@router.post("/api/logout")
def logout():
    return {"success": True, "message": "Logged out successfully"}


@router.get("/api/check-auth")
def check_auth(user: Optional[Dict[str, Any]] = Depends(get_current_user)):
    if user is None:
        return {"success": False, "isAuthenticated": False}
    return {"success": True, "isAuthenticated": True, "user": _user_out(user).model_dump()}


@router.get("/api/users")
def list_users(db: Database = Depends(get_db)):
    users = [_user_out(doc) for doc in get_documents(USER_COLLECTION, database=db)]
    return {"success": True, "count": len(users), "users": [u.model_dump() for u in users]}


@router.post("/api/forgot-password")
def forgot_password(payload: ForgotPasswordRequest, db: Database = Depends(get_db)):
    user = db[USER_COLLECTION].find_one({"email": payload.email})
    if not user:
        logger.info("password_reset_unknown_email")
        return {"success": True, "message": "If this email is registered, you will receive a reset link."}

    token, expires_at = create_reset_token(str(user["_id"]))
    db[USER_COLLECTION].update_one(
        {"_id": user["_id"]},
        {"$set": {"reset_token_hash": hash_token(token), "reset_token_expiry": expires_at}},
    )
    logger.info("password_reset_issued", username=user["username"], expires_at=expires_at.isoformat())
    # no mail delivery; the link carries a live token so it stays at DEBUG
    logger.debug("password_reset_link", reset_link=f"{settings.base_url}/reset-password?token={token}")
    return {"success": True, "message": "Password reset link sent to your email!"}


@router.post("/api/reset-password")
def reset_password(payload: ResetPasswordRequest, db: Database = Depends(get_db)):
    _check_new_password(payload.password, payload.confirm_password)

    claims = decode_token(payload.token, RESET)
    oid = parse_object_id(claims.get("sub", "")) if claims else None
    user = db[USER_COLLECTION].find_one({"_id": oid}) if oid else None
    if not user or user.get("reset_token_hash") != hash_token(payload.token):
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    db[USER_COLLECTION].update_one(
        {"_id": user["_id"]},
        {
            "$set": {
                "password_hash": hash_password(payload.password),
                "updated_at": datetime.now(timezone.utc),
            },
            "$unset": {"reset_token_hash": "", "reset_token_expiry": ""},
        },
    )
    logger.info("password_reset_completed", username=user["username"])
    return {"success": True, "message": "Password reset successful! Redirecting to login..."}


RESET_PAGE = """<!DOCTYPE html>
<html>
<head>
<title>Reset Password</title>
<style>
  body {{ font-family: Arial, sans-serif; background: #f4f5fb; display: flex; justify-content: center; align-items: center; min-height: 100vh; margin: 0; }}
  .container {{ background: white; padding: 40px; border-radius: 12px; width: 100%; max-width: 400px; }}
  input, button {{ width: 100%; padding: 12px; margin-bottom: 16px; box-sizing: border-box; }}
  .message.error {{ color: #721c24; }}
  .message.success {{ color: #155724; }}
</style>
</head>
<body>
<div class="container">
  <h2>Reset Password</h2>
  <form id="resetForm">
    <input type="hidden" id="token" value="{token}">
    <label>New Password</label>
    <input type="password" id="password" required minlength="{min_length}">
    <label>Confirm Password</label>
    <input type="password" id="confirmPassword" required>
    <button type="submit">Reset Password</button>
  </form>
  <div id="message" class="message"></div>
</div>
<script>
document.getElementById('resetForm').addEventListener('submit', async (e) => {{
  e.preventDefault();
  const msg = document.getElementById('message');
  const res = await fetch('/api/reset-password', {{
    method: 'POST',
    headers: {{ 'Content-Type': 'application/json' }},
    body: JSON.stringify({{
      token: document.getElementById('token').value,
      password: document.getElementById('password').value,
      confirm_password: document.getElementById('confirmPassword').value
    }})
  }});
  const data = await res.json();
  msg.className = 'message ' + (data.success ? 'success' : 'error');
  msg.textContent = data.message;
  if (data.success) setTimeout(() => {{ window.location.href = '/login'; }}, 3000);
}});
</script>
</body>
</html>
"""


@router.get("/reset-password", response_class=HTMLResponse)
def reset_password_page(token: str = Query("")):
    return RESET_PAGE.format(token=escape(token, quote=True), min_length=MIN_PASSWORD_LENGTH)
