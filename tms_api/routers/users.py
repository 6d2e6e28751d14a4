# tms_api/routers/users.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo import DESCENDING
from pymongo.database import Database

from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import SystemUser, UserRole, UserStatus, UserUpdate
from tms_api.routers.deps import get_or_404
from tms_api.services.audit import log_audit_action

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/")
def list_users(role: Optional[UserRole] = None, status: Optional[UserStatus] = None, db: Database = Depends(get_db)):
    filter_dict = {}
    if role:
        filter_dict["role"] = role
    if status:
        filter_dict["status"] = status
    return store.list_documents(db, store.USERS, filter_dict, sort=[("createdAt", DESCENDING)])


@router.post("/", status_code=201)
def create_user(user: SystemUser, db: Database = Depends(get_db)):
    if db[store.USERS].count_documents({"uid": user.uid}, limit=1):
        raise HTTPException(status_code=400, detail=f"User '{user.uid}' already exists.")
    user_id = store.create_document(db, store.USERS, user)
    return store.get_document(db, store.USERS, user_id)


@router.get("/audit-logs")
def list_audit_logs(targetUserId: Optional[str] = None, limit: int = 100, db: Database = Depends(get_db)):
    filter_dict = {"targetUserId": targetUserId} if targetUserId else {}
    return store.list_documents(db, store.AUDIT_LOGS, filter_dict, sort=[("timestamp", DESCENDING)], limit=limit)


@router.get("/{user_id}")
def get_user(user_id: str, db: Database = Depends(get_db)):
    return get_or_404(db, store.USERS, user_id, "User")


@router.patch("/{user_id}", summary="Change a user's role or status (audit logged)")
def update_user(user_id: str, update: UserUpdate, db: Database = Depends(get_db)):
    user = get_or_404(db, store.USERS, user_id, "User")
    changes = update.model_dump(exclude={"changedBy"}, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update: provide a role or status.")

    store.update_document(db, store.USERS, user_id, changes)
    changed_by = update.changedBy.model_dump()
    for field, value in changes.items():
        if user.get(field) != value:
            log_audit_action(db, user_id, f"{field}_change", changed_by, {"from": user.get(field), "to": value})
    return store.get_document(db, store.USERS, user_id)
