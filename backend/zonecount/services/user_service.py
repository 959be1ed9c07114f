# Overview: Company and user management.

from __future__ import annotations

from ..models import User
from ..records import CompanyRecord, UserRecord
from ..repositories import get_repository
from ..validation import (
    USER_POLICY,
    ConflictError,
    ValidationError,
    enforce_rules_user,
    validate_payload,
)
from .auth_service import generate_password, hash_password
from .permission_service import Principal, authorize
from .tenant_service import require_user_in_company, validate_company_active


def create_company(name: str, code: str | None = None, repo=None) -> CompanyRecord:
    """Bootstrap a tenant. Used by the CLI; there is no HTTP endpoint for it."""
    repo = repo or get_repository()
    name = (name or "").strip()
    if not name:
        raise ValidationError("Company name is required")
    code = (code or "").strip() or None
    if code and any(c.code == code for c in repo.list_companies()):
        raise ConflictError(f"Company code already exists: {code}")
    with repo.transaction():
        return repo.add_company(CompanyRecord(id=None, name=name, code=code))


def register_user(
    company_id: int,
    name: str,
    email: str,
    role: str,
    password: str | None = None,
    repo=None,
) -> tuple[UserRecord, str | None]:
    """
    Create a user without a principal check (CLI bootstrap and create_user).

    Returns (user, generated_password). generated_password is None when
    the caller supplied one.
    """
    repo = repo or get_repository()
    validate_company_active(repo, company_id)

    patch = validate_payload(
        model=User,
        payload={"name": name, "email": email, "role": role},
        policy=USER_POLICY,
        partial=False,
    )
    enforce_rules_user(patch)

    if repo.get_user_by_email(company_id, patch["email"]):
        raise ConflictError("E-mail already exists in this company")

    generated = None
    if not password:
        password = generated = generate_password()
    password_hash = hash_password(password)

    with repo.transaction():
        user = repo.add_user(
            UserRecord(
                id=None,
                company_id=company_id,
                name=patch["name"],
                email=patch["email"],
                role=patch["role"],
                password_hash=password_hash,
            )
        )
    return user, generated


def list_users(principal: Principal, repo=None) -> list[UserRecord]:
    repo = repo or get_repository()
    authorize(principal, "MANAGE_USERS")
    return repo.list_users(principal.company_id)


def get_user(principal: Principal, user_id: int, repo=None) -> UserRecord:
    repo = repo or get_repository()
    authorize(principal, "MANAGE_USERS")
    return require_user_in_company(repo, user_id, principal.company_id)


def create_user(principal: Principal, payload: dict, repo=None) -> tuple[UserRecord, str | None]:
    """
    Admin creates a user in their own company.

    A company_id in the payload is ignored; the principal's company is
    always used.
    """
    repo = repo or get_repository()
    authorize(principal, "MANAGE_USERS")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = {k: v for k, v in payload.items() if k != "company_id"}
    password = payload.pop("password", None)
    return register_user(
        principal.company_id,
        payload.get("name"),
        payload.get("email"),
        payload.get("role"),
        password=password,
        repo=repo,
    )


def update_user(principal: Principal, user_id: int, payload: dict, repo=None) -> UserRecord:
    repo = repo or get_repository()
    authorize(principal, "MANAGE_USERS")
    user = require_user_in_company(repo, user_id, principal.company_id)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = {k: v for k, v in payload.items() if k not in ("company_id", "id")}
    password = payload.pop("password", None)

    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=True)
    enforce_rules_user(patch)

    if "email" in patch and patch["email"] != user.email:
        if repo.get_user_by_email(principal.company_id, patch["email"]):
            raise ConflictError("E-mail already exists in this company")

    if user.id == principal.user_id and patch.get("role", user.role) != user.role:
        raise ValidationError("You cannot change your own role")

    if password:
        patch["password_hash"] = hash_password(password)

    with repo.transaction():
        return repo.update_user(principal.company_id, user.id, patch)


def delete_user(principal: Principal, user_id: int, repo=None) -> None:
    repo = repo or get_repository()
    authorize(principal, "MANAGE_USERS")
    user = require_user_in_company(repo, user_id, principal.company_id)
    if user.id == principal.user_id:
        raise ValidationError("You cannot delete your own account")
    with repo.transaction():
        repo.delete_user(principal.company_id, user.id)
