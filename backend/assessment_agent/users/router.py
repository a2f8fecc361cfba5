"""User administration endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth.access import Identity
from ..auth.models import RoleUpdate, UserCreate, UserResponse
from ..auth.service import get_current_identity
from ..database import get_db
from ..errors import raise_for_result
from ..models import UserRole
from . import service

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    data: UserCreate,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.create_user(db, identity, data))


@router.get("", response_model=List[UserResponse])
def list_users(
    role: Optional[UserRole] = Query(None),
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.list_users(db, identity, role))


@router.patch("/{user_id}/role", response_model=UserResponse)
def change_role(
    user_id: str,
    data: RoleUpdate,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.change_role(db, identity, user_id, data))


@router.post("/{user_id}/deactivate", response_model=UserResponse)
def deactivate_user(
    user_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.deactivate_user(db, identity, user_id))
