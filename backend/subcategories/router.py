"""Sub-category configuration endpoints."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import get_current_user, require_permission
from backend.common.constants import TicketModule
from backend.core_hr.models import Employee
from backend.database import get_db
from backend.subcategories.schemas import (
    SubCategoryCreate,
    SubCategoryResponse,
    SubCategoryUpdate,
)
from backend.subcategories.service import SubCategoryService

router = APIRouter(prefix="", tags=["subcategories"])


@router.get("")
async def list_configs(
    module: Optional[TicketModule] = Query(None),
    include_inactive: bool = Query(False),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    configs = await SubCategoryService.list_configs(
        db, module=module, include_inactive=include_inactive,
    )
    return {"data": [SubCategoryResponse.model_validate(c) for c in configs]}


@router.get("/mapping")
async def get_mapping(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active routing rules nested by module, for request forms."""
    return {"data": await SubCategoryService.mapping(db)}


@router.get("/module/{module}")
async def list_by_module(
    module: TicketModule,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    configs = await SubCategoryService.list_configs(db, module=module)
    return {"data": [SubCategoryResponse.model_validate(c) for c in configs]}


@router.get("/{module}/{sub_category}")
async def get_by_name(
    module: TicketModule,
    sub_category: str,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    config = await SubCategoryService.get_by_name(db, module, sub_category)
    return {"data": SubCategoryResponse.model_validate(config)}


@router.post("", status_code=201)
async def create_config(
    body: SubCategoryCreate,
    actor: Employee = Depends(require_permission("subcategory:manage")),
    db: AsyncSession = Depends(get_db),
):
    config = await SubCategoryService.create_config(db, body, actor_id=actor.id)
    await db.commit()
    return {"message": "Configuration created", "data": SubCategoryResponse.model_validate(config)}


@router.put("/{config_id}")
async def update_config(
    config_id: uuid.UUID,
    body: SubCategoryUpdate,
    actor: Employee = Depends(require_permission("subcategory:manage")),
    db: AsyncSession = Depends(get_db),
):
    config = await SubCategoryService.update_config(db, config_id, body, actor_id=actor.id)
    await db.commit()
    return {"message": "Configuration updated", "data": SubCategoryResponse.model_validate(config)}


@router.delete("/{config_id}")
async def delete_config(
    config_id: uuid.UUID,
    actor: Employee = Depends(require_permission("subcategory:manage")),
    db: AsyncSession = Depends(get_db),
):
    await SubCategoryService.deactivate_config(db, config_id, actor_id=actor.id)
    await db.commit()
    return {"message": "Configuration deactivated successfully"}
