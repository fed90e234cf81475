# osoul/routes/branches.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from osoul.constants import Role
from osoul.database.db import atomic, get_db
from osoul.errors import Conflict, NotFound, ValidationError
from osoul.models.models import Branch, User
from osoul.repositories import BranchRepository, UserRepository
from osoul.schemas.branches import BranchCreate, BranchOut, BranchUpdate
from osoul.services import collection_query
from osoul.utils.auth import get_current_user, require_roles
from osoul.utils.time_windows import optional_window

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/branches",
    tags=["Branches"],
    dependencies=[Depends(get_current_user)],
)

NULLABLE_FIELDS = {"region", "city", "manager_id"}


def _get_or_404(db: Session, branch_id: int) -> Branch:
    branch = BranchRepository(db).get(branch_id)
    if not branch:
        raise NotFound("Branch not found")
    return branch


def _check_manager(db: Session, manager_id: Optional[int]) -> None:
    if manager_id is not None and not UserRepository(db).get(manager_id):
        raise ValidationError("Manager not found", details=[{"field": "managerId", "message": "unknown user"}])


# ===========================
#        LIST / GET
# ===========================
@router.get("", response_model=List[BranchOut])
def list_branches(
    is_active: Optional[bool] = Query(None, alias="isActive"),
    db: Session = Depends(get_db),
):
    return BranchRepository(db).list(is_active=is_active)


@router.get("/{branch_id}", response_model=BranchOut)
def get_branch(branch_id: int, db: Session = Depends(get_db)):
    return _get_or_404(db, branch_id)


@router.get("/{branch_id}/stats")
def branch_stats(
    branch_id: int,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    branch = _get_or_404(db, branch_id)
    stats = collection_query.branch_stats(db, branch.id, optional_window(start_date, end_date))
    return {"branchCode": branch.branch_code, "branchName": branch.branch_name, **stats}


# ===========================
#        CREATE
# ===========================
@router.post("", response_model=BranchOut, status_code=status.HTTP_201_CREATED)
def create_branch(
    payload: BranchCreate,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(Role.ADMIN, Role.MANAGER)),
):
    branches = BranchRepository(db)
    code = payload.branch_code.strip()
    if branches.get_by_code(code):
        raise Conflict("Branch code already exists")
    _check_manager(db, payload.manager_id)

    with atomic(db):
        branch = branches.insert(
            branch_code=code,
            branch_name=payload.branch_name.strip(),
            region=payload.region,
            city=payload.city,
            manager_id=payload.manager_id,
            is_active=True,
        )
    db.refresh(branch)
    logger.info("Branch created id=%s code=%s by user=%s", branch.id, branch.branch_code, current.id)
    return branch


# ===========================
#        UPDATE
# ===========================
@router.put("/{branch_id}", response_model=BranchOut)
def update_branch(
    branch_id: int,
    payload: BranchUpdate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_roles(Role.ADMIN, Role.MANAGER)),
):
    # only what the client actually sent
    values = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k in NULLABLE_FIELDS
    }
    if not values:
        raise ValidationError("No fields to update")

    branch = _get_or_404(db, branch_id)
    _check_manager(db, values.get("manager_id"))

    with atomic(db):
        BranchRepository(db).update(branch, values)
    db.refresh(branch)
    return branch


# ===========================
#        DELETE (soft)
# ===========================
@router.delete("/{branch_id}")
def deactivate_branch(
    branch_id: int,
    db: Session = Depends(get_db),
    current: User = Depends(require_roles(Role.ADMIN)),
):
    branch = _get_or_404(db, branch_id)
    with atomic(db):
        BranchRepository(db).update(branch, {"is_active": False})
    logger.info("Branch deactivated id=%s by user=%s", branch.id, current.id)
    return {"message": "Branch deactivated successfully"}
