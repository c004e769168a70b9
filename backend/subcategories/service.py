"""Sub-category configuration service."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.common.audit import create_audit_entry
from backend.common.constants import TicketModule
from backend.common.exceptions import ConflictError, NotFoundException
from backend.subcategories.models import SubCategoryConfig
from backend.subcategories.schemas import SubCategoryCreate, SubCategoryUpdate


class SubCategoryService:

    @staticmethod
    async def list_configs(
        db: AsyncSession,
        *,
        module: Optional[TicketModule] = None,
        include_inactive: bool = False,
    ) -> list[SubCategoryConfig]:
        query = select(SubCategoryConfig).order_by(
            SubCategoryConfig.module,
            SubCategoryConfig.order,
            SubCategoryConfig.sub_category,
        )
        if module is not None:
            query = query.where(SubCategoryConfig.module == module)
        if not include_inactive:
            query = query.where(SubCategoryConfig.is_active.is_(True))
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def mapping(db: AsyncSession) -> dict[str, dict[str, dict]]:
        """Active configs nested as ``{module: {sub_category: routing}}``."""
        out: dict[str, dict[str, dict]] = {}
        for cfg in await SubCategoryService.list_configs(db):
            out.setdefault(cfg.module.value, {})[cfg.sub_category] = {
                "requires_approval": cfg.requires_approval,
                "processing_queue": cfg.processing_queue,
                "specialist_queue": cfg.specialist_queue,
            }
        return out

    @staticmethod
    async def find(
        db: AsyncSession,
        module: TicketModule,
        sub_category: str,
        *,
        active_only: bool = True,
    ) -> Optional[SubCategoryConfig]:
        query = select(SubCategoryConfig).where(
            SubCategoryConfig.module == module,
            SubCategoryConfig.sub_category == sub_category,
        )
        if active_only:
            query = query.where(SubCategoryConfig.is_active.is_(True))
        return (await db.execute(query)).scalars().first()

    @staticmethod
    async def get_by_name(
        db: AsyncSession,
        module: TicketModule,
        sub_category: str,
    ) -> SubCategoryConfig:
        config = await SubCategoryService.find(db, module, sub_category)
        if config is None:
            raise NotFoundException("SubCategoryConfig", f"{module.value}/{sub_category}")
        return config

    @staticmethod
    async def get_config(db: AsyncSession, config_id: uuid.UUID) -> SubCategoryConfig:
        config = await db.get(SubCategoryConfig, config_id)
        if config is None:
            raise NotFoundException("SubCategoryConfig", config_id)
        return config

    @staticmethod
    async def create_config(
        db: AsyncSession,
        data: SubCategoryCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> SubCategoryConfig:
        existing = await SubCategoryService.find(
            db, data.module, data.sub_category, active_only=False,
        )
        if existing is not None:
            raise ConflictError("sub_category", f"{data.module.value}/{data.sub_category}")

        payload = data.model_dump(exclude={"approval_config"})
        config = SubCategoryConfig(
            **payload,
            approval_config=data.approval_config.model_dump(mode="json"),
        )
        db.add(config)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="subcategory_config",
            entity_id=config.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return config

    @staticmethod
    async def update_config(
        db: AsyncSession,
        config_id: uuid.UUID,
        data: SubCategoryUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> SubCategoryConfig:
        config = await SubCategoryService.get_config(db, config_id)
        changes = data.model_dump(mode="json", exclude_unset=True)
        for field, value in changes.items():
            setattr(config, field, value)
        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="subcategory_config",
            entity_id=config.id,
            actor_id=actor_id,
            new_values=changes,
        )
        return config

    @staticmethod
    async def deactivate_config(
        db: AsyncSession,
        config_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> SubCategoryConfig:
        """Soft delete: the row stays for tickets that reference it."""
        config = await SubCategoryService.get_config(db, config_id)
        config.is_active = False
        await db.flush()
        await create_audit_entry(
            db,
            action="delete",
            entity_type="subcategory_config",
            entity_id=config.id,
            actor_id=actor_id,
        )
        return config
