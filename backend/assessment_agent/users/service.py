"""User administration (SuperAdmin only)."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..auth.access import Identity, require_super_admin
from ..auth.models import RoleUpdate, UserCreate
from ..errors import InvalidInput, InvalidState, action
from ..models import User, UserRole
from ..queries import get_or_raise

logger = logging.getLogger(__name__)


@action("Failed to create user")
def create_user(db: Session, identity: Optional[Identity], data) -> User:
    require_super_admin(identity)
    data = UserCreate.model_validate(data)
    if db.query(User).filter(User.email == data.email).first():
        raise InvalidState("Email already registered")

    user = User(email=data.email, name=data.name, role=data.role)
    user.set_password(data.password)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.email} created with role {user.role.value}")
    return user


@action("Failed to fetch users")
def list_users(db: Session, identity: Optional[Identity], role: Optional[UserRole] = None) -> List[User]:
    require_super_admin(identity)
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    return query.order_by(User.created_at.desc()).all()


@action("Failed to change role")
def change_role(db: Session, identity: Optional[Identity], user_id: str, data) -> User:
    identity = require_super_admin(identity)
    data = RoleUpdate.model_validate(data)
    user = get_or_raise(db, User, user_id, "User")
    if user.id == identity.id and data.role != UserRole.super_admin:
        raise InvalidInput("You cannot remove your own super admin role")
    if user.role == data.role:
        return user

    if user.administered_courses and data.role == UserRole.student:
        raise InvalidState("Reassign this user's courses before making them a student")
    if user.submissions and data.role != UserRole.student:
        raise InvalidState("Users with submissions must remain students")

    logger.info(f"Role of {user.email} changed from {user.role.value} to {data.role.value} by {identity.id}")
    user.role = data.role
    db.commit()
    db.refresh(user)
    return user


@action("Failed to deactivate user")
def deactivate_user(db: Session, identity: Optional[Identity], user_id: str) -> User:
    identity = require_super_admin(identity)
    user = get_or_raise(db, User, user_id, "User")
    if user.id == identity.id:
        raise InvalidInput("You cannot deactivate your own account")
    user.is_active = False
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.email} deactivated")
    return user
