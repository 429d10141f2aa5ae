from decimal import Decimal
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.core.exceptions import NotFound
from showroom.core.utils import to_cents
from showroom.models.catalog import VEHICLE_TYPES, Vehicle


class VehicleSpec(BaseModel):
    icon: str = "information-circle-outline"
    name: str
    value: str


class VehicleIn(BaseModel):
    name: str = Field(min_length=1)
    type: str
    price: Decimal = Field(gt=0)
    description: str = ""
    image_url: Optional[str] = None
    specs: List[VehicleSpec] = Field(default_factory=list)

    @field_validator("type")
    @classmethod
    def known_type(cls, value: str) -> str:
        if value not in VEHICLE_TYPES:
            raise ValueError(f"type must be one of {', '.join(VEHICLE_TYPES)}")
        return value

    @field_validator("price")
    @classmethod
    def whole_cents(cls, value: Decimal) -> Decimal:
        return to_cents(value)


class CatalogService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_vehicles(self, vehicle_type: str = None) -> List[Vehicle]:
        stmt = select(Vehicle).order_by(Vehicle.id)
        if vehicle_type:
            stmt = stmt.where(Vehicle.type == vehicle_type)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_vehicle(self, vehicle_id: int) -> Vehicle:
        vehicle = await self.session.get(Vehicle, vehicle_id)
        if not vehicle:
            raise NotFound("Vehicle not found")
        return vehicle

    async def add_vehicle(self, data: VehicleIn) -> Vehicle:
        vehicle = Vehicle(**data.model_dump())
        self.session.add(vehicle)
        await self.session.commit()
        await self.session.refresh(vehicle)
        logger.info(f"Vehicle {vehicle.id} added: {vehicle.name}")
        return vehicle

    async def update_vehicle(self, vehicle_id: int, data: VehicleIn) -> Vehicle:
        vehicle = await self.get_vehicle(vehicle_id)
        for key, value in data.model_dump().items():
            setattr(vehicle, key, value)
        await self.session.commit()
        await self.session.refresh(vehicle)
        return vehicle

    async def delete_vehicle(self, vehicle_id: int):
        vehicle = await self.get_vehicle(vehicle_id)
        await self.session.delete(vehicle)
        await self.session.commit()
        logger.info(f"Vehicle {vehicle_id} deleted")

    async def count(self) -> int:
        return await self.session.scalar(select(func.count(Vehicle.id)))

    async def seed(self, vehicles: List[dict] = None) -> int:
        """Inserts the launch lineup into an empty catalog. Returns how many rows were added."""
        if await self.count():
            return 0
        vehicles = SEED_VEHICLES if vehicles is None else vehicles
        for data in vehicles:
            self.session.add(Vehicle(**VehicleIn(**data).model_dump()))
        await self.session.commit()
        return len(vehicles)


def _specs(*rows):
    return [{"icon": icon, "name": name, "value": value} for icon, name, value in rows]


SEED_VEHICLES = [
    {
        "name": "BYD Seal",
        "type": "Sedan",
        "price": 212800,
        "description": "A dynamic and elegant all-electric sedan with cutting-edge Blade Battery technology.",
        "image_url": "https://picsum.photos/seed/byd-seal/800/600",
        "specs": _specs(("flash-outline", "Range", "700 km"), ("rocket-outline", "0-100km/h", "3.8s"),
                        ("battery-charging-outline", "Battery", "82.5 kWh"), ("car-sport-outline", "Drive", "AWD")),
    },
    {
        "name": "BYD Tang EV",
        "type": "SUV",
        "price": 289800,
        "description": "A spacious and powerful 7-seater electric SUV, perfect for families and adventures.",
        "image_url": "https://picsum.photos/seed/byd-tang/800/600",
        "specs": _specs(("flash-outline", "Range", "505 km"), ("rocket-outline", "0-100km/h", "4.4s"),
                        ("battery-charging-outline", "Battery", "86.4 kWh"), ("people-outline", "Seating", "7")),
    },
    {
        "name": "BYD Dolphin",
        "type": "Hatchback",
        "price": 116800,
        "description": "A nimble and stylish compact EV, designed for efficient and fun city driving.",
        "image_url": "https://picsum.photos/seed/byd-dolphin/800/600",
        "specs": _specs(("flash-outline", "Range", "420 km"), ("rocket-outline", "0-100km/h", "7.5s"),
                        ("battery-charging-outline", "Battery", "44.9 kWh"), ("color-palette-outline", "Colors", "5+")),
    },
    {
        "name": "BYD Han EV",
        "type": "Sedan",
        "price": 239800,
        "description": "A luxurious flagship sedan that combines breathtaking performance with sophisticated design.",
        "image_url": "https://picsum.photos/seed/byd-han/800/600",
        "specs": _specs(("flash-outline", "Range", "605 km"), ("rocket-outline", "0-100km/h", "3.9s"),
                        ("battery-charging-outline", "Battery", "76.9 kWh"), ("shield-checkmark-outline", "Safety", "5-Star")),
    },
    {
        "name": "BYD Yuan Plus (Atto 3)",
        "type": "SUV",
        "price": 139800,
        "description": "A compact and modern SUV with a unique interior design and excellent efficiency.",
        "image_url": "https://picsum.photos/seed/byd-atto3/800/600",
        "specs": _specs(("flash-outline", "Range", "510 km"), ("rocket-outline", "0-100km/h", "7.3s"),
                        ("battery-charging-outline", "Battery", "60.5 kWh"), ("leaf-outline", "Platform", "e-Platform 3.0")),
    },
    {
        "name": "BYD eBus",
        "type": "Commercial",
        "price": 1200000,
        "description": "A reliable and zero-emission electric bus solution for modern public transport.",
        "image_url": "https://picsum.photos/seed/byd-ebus/800/600",
        "specs": _specs(("flash-outline", "Range", "250 km"), ("people-outline", "Capacity", "90"),
                        ("battery-charging-outline", "Battery", "324 kWh"), ("construct-outline", "Length", "12m")),
    },
]
