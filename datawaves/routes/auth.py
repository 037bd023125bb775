import logging
import re

from flask import Blueprint, jsonify, request
from flask_jwt_extended import create_access_token, current_user, jwt_required

from datawaves.errors import AuthenticationError, ValidationError
from datawaves.extensions import db
from datawaves.models.user import User

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).{8,}$")


def _text(data, key):
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def issue_token(user):
    return create_access_token(identity=str(user.id), additional_claims={"role": user.role})


@auth_bp.post("/register")
def register():
    """
    Create a customer account and return an access token.

    Returns:
        {access_token, user} with 201.
    """
    data = request.get_json(silent=True) or {}
    full_name = _text(data, "full_name")
    email = _text(data, "email").lower()
    password = data.get("password")
    if not isinstance(password, str):
        password = ""
    phone = _text(data, "phone") or None

    if not full_name or not email or not password:
        raise ValidationError("Full name, email and password are required", code="MISSING_FIELDS")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email address", code="INVALID_EMAIL")
    if not PASSWORD_PATTERN.match(password):
        raise ValidationError(
            "Password must be at least 8 characters with uppercase, lowercase and a number",
            code="WEAK_PASSWORD",
        )
    if User.query.filter_by(email=email).first():
        raise ValidationError("An account with this email already exists", code="EMAIL_TAKEN", status_code=409)

    user = User(full_name=full_name, email=email, phone=phone)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    logger.info("User registered", extra={"user_id": user.id})
    return jsonify({"access_token": issue_token(user), "user": user.to_dict()}), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = _text(data, "email").lower()
    password = data.get("password")
    if not isinstance(password, str):
        password = ""

    if not email or not password:
        raise ValidationError("Email and password are required", code="MISSING_FIELDS")

    user = User.query.filter_by(email=email).first()
    if user is None or not user.check_password(password):
        logger.warning("Failed login attempt", extra={"user_id": user.id if user else None})
        raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

    logger.info("User logged in", extra={"user_id": user.id})
    return jsonify({"access_token": issue_token(user), "user": user.to_dict()}), 200


@auth_bp.get("/me")
@jwt_required()
def me():
    return jsonify({"user": current_user.to_dict()}), 200
