"""Moderation flag routes, open to staff and admins."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from api.routes.auth import require_role
from core.dependencies import FlagManagerDep
from schemas.flag import CreateFlagRequest, Flag, FlagItemType
from schemas.user import Role, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/flags", tags=["Flags"])

Moderator = Depends(require_role(Role.STAFF, Role.ADMIN))


@router.post("", response_model=Flag, summary="Flag an item")
def add_flag(
    req: CreateFlagRequest,
    current_user: User = Moderator,
    flag_manager: FlagManagerDep = None,
) -> Flag:
    return flag_manager.add_flag(req.item_type, req.item_id, current_user.username, req.reason)


@router.get("", response_model=List[Flag], summary="List flags")
def list_flags(
    item_type: Optional[FlagItemType] = None,
    current_user: User = Moderator,
    flag_manager: FlagManagerDep = None,
) -> List[Flag]:
    return flag_manager.list_flags(item_type)


@router.get("/{item_type}/{item_id}", response_model=List[Flag], summary="Flags on one item")
def flags_for_item(
    item_type: FlagItemType,
    item_id: int,
    current_user: User = Moderator,
    flag_manager: FlagManagerDep = None,
) -> List[Flag]:
    return flag_manager.flags_for_item(item_type, item_id)


@router.delete("/{item_type}/{item_id}", summary="Clear the flags on one item")
def clear_flags(
    item_type: FlagItemType,
    item_id: int,
    current_user: User = Moderator,
    flag_manager: FlagManagerDep = None,
) -> dict:
    return {"removed": flag_manager.clear_flags_for_item(item_type, item_id)}
