"""
Structured trip planning tools.

The model fills in the structure; these tools validate it and stamp it so
the client can render a trip card or a packing checklist.
"""

import logging
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TripCard(_CamelModel):
    city: str = Field(min_length=1, description="Destination city")
    summary: str = Field(description="One or two sentence overview of the trip")
    packing_advice: list[str] = Field(description="Short packing tips")
    cautions: list[str] = Field(default_factory=list, description="Things to watch out for")


class TripCardResult(TripCard):
    created_at: str


class PackingItem(_CamelModel):
    item: str = Field(min_length=1)
    reason: str


class PackingListInput(_CamelModel):
    items: list[PackingItem] = Field(min_length=1, description="Items to pack and why")


class PackingListResult(_CamelModel):
    items: list[PackingItem]
    total_items: int
    created_at: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def create_trip_card(card: TripCard) -> dict:
    logger.info("Creating trip card for %s", card.city)
    return {**card.model_dump(by_alias=True), "createdAt": _now()}


async def create_packing_list(params: PackingListInput) -> dict:
    logger.info("Creating packing list with %d item(s)", len(params.items))
    return {
        "items": [item.model_dump(by_alias=True) for item in params.items],
        "totalItems": len(params.items),
        "createdAt": _now(),
    }


def register(registry) -> None:
    """Register the trip card and packing list tools."""
    registry.register(
        name="create_trip_card",
        description=(
            "Create a structured trip card for a destination with a summary, "
            "packing advice and cautions"
        ),
        input_model=TripCard,
        handler=create_trip_card,
        output_model=TripCardResult,
    )
    registry.register(
        name="create_packing_list",
        description="Create a packing checklist where every item has a reason",
        input_model=PackingListInput,
        handler=create_packing_list,
        output_model=PackingListResult,
    )
