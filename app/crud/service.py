# app/crud/service.py
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import translate_storage_errors
from app.db.models.service import Service


@translate_storage_errors
async def get_service(db: AsyncSession, service_id: int) -> Optional[Service]:
    return await db.get(Service, service_id)


@translate_storage_errors
async def create_service(
    db: AsyncSession,
    account_id: int,
    *,
    name: str,
    duration_min: int = 30,
    description: Optional[str] = None,
) -> Service:
    obj = Service(account_id=account_id, name=name, duration_min=duration_min, description=description)
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj
