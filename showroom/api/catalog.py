from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.api.deps import to_dict
from showroom.core.database import get_db
from showroom.services.catalog_service import CatalogService

router = APIRouter()

@router.get("")
async def list_vehicles(type: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    vehicles = await CatalogService(db).list_vehicles(type)
    return {"vehicles": [to_dict(v) for v in vehicles]}

@router.get("/{vehicle_id}")
async def get_vehicle(vehicle_id: int, db: AsyncSession = Depends(get_db)):
    return to_dict(await CatalogService(db).get_vehicle(vehicle_id))
