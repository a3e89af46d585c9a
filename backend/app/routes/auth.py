# Overview: Flask API routes for user accounts and login; parses input and returns JSON responses.

# backend/app/routes/auth.py
"""
User account routes.

SECURITY NOTES:
- Passwords are hashed with bcrypt before storage
- Login failures give one generic message for unknown user, wrong
  password and deactivated account alike
"""

from flask import Blueprint, jsonify

from ..services import auth_service
from ..validation import optional_text, require_field
from ..decorators import json_body, log_failures


auth_bp = Blueprint("auth", __name__, url_prefix="/api")


@auth_bp.post("/users")
@json_body
@log_failures("register user")
def register_route(payload: dict):
    """
    Create a user account.

    Body: username, email, password, role (optional, admin/cashier, default cashier)
    """
    user = auth_service.create_user(
        username=require_field(payload, "username"),
        email=require_field(payload, "email"),
        password=require_field(payload, "password"),
        role=optional_text(payload, "role") or "cashier",
    )
    return jsonify({"user": user.to_dict()}), 201


@auth_bp.post("/auth/login")
@json_body
@log_failures("login user")
def login_route(payload: dict):
    """
    Check credentials.

    Body: username, password

    Returns the user on success so the register can attribute later actions
    (cashier_id, created_by) to them.
    """
    username = payload.get("username")
    password = payload.get("password")
    if not username or not password:
        return jsonify({"error": "username and password required"}), 400

    user = auth_service.authenticate(username, password)
    if not user:
        return jsonify({"error": "Invalid credentials"}), 401

    return jsonify({"user": user.to_dict(), "message": "Login successful"}), 200
