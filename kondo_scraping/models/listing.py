"""
Listing-side models: the sparse scraped record and the media rows handed
to the persistence collaborators.
"""
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class KondoType(str, Enum):
    """Listing categories."""
    BAIRRO = "bairro"
    CASAS = "casas"
    CHACARAS = "chacaras"
    PREDIOS = "predios"
    COMERCIAL = "comercial"
    INDUSTRIAL = "industrial"


class KondoStatus(str, Enum):
    DRAFT = "draft"
    SCRAPING = "scraping"
    TEXT_READY = "text_ready"
    MEDIA_GATHERING = "media_gathering"
    DONE = "done"


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class MediaStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    REJECTED = "rejected"


# Amenity flags of the Kondo entity, grouped as on the entity itself
INFRA_FIELDS = [
    # basic
    "infra_eletricity", "infra_water", "infra_sidewalks", "infra_internet",
    # security
    "infra_lobby_24h", "infra_security_team", "infra_wall",
    # convenience
    "infra_sports_court", "infra_barbecue_zone", "infra_pool", "infra_living_space",
    "infra_pet_area", "infra_kids_area", "infra_grass_area", "infra_gourmet_area",
    "infra_parking_lot", "infra_market_nearby", "infra_party_saloon",
    "infra_lounge_bar", "infra_home_office",
    # extra
    "infra_lagoon", "infra_generates_power", "infra_woods", "infra_vegetable_garden",
    "infra_nature_trail", "infra_gardens", "infra_heliport", "infra_gym",
    "infra_interactive_lobby",
]

# Keys produced by the pipeline that never map onto listing columns
PIPELINE_ONLY_FIELDS = {"medias", "scraped_at", "source_url", "platform_metadata"}


class ScrapedFields(BaseModel):
    """
    Sparse partial Kondo record produced by one engine run.

    Parsers leave a field as None when they did not find it; only fields
    that were actually extracted take part in the merge.
    """
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    slug: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None

    # Financial
    lot_avg_price: Optional[float] = None
    condo_rent: Optional[float] = None
    finance: Optional[bool] = None
    finance_tranches: Optional[int] = None
    finance_fees: Optional[bool] = None
    entry_value_percentage: Optional[float] = None
    immediate_delivery: Optional[bool] = None

    # Lots
    lots_available: Optional[int] = None
    lots_min_size: Optional[float] = None

    # Address
    cep: Optional[str] = None
    address: Optional[str] = None
    address_street_and_numbers: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None

    # Infrastructure
    infra_description: Optional[str] = None
    infra_eletricity: Optional[bool] = None
    infra_water: Optional[bool] = None
    infra_sidewalks: Optional[bool] = None
    infra_internet: Optional[bool] = None
    infra_lobby_24h: Optional[bool] = None
    infra_security_team: Optional[bool] = None
    infra_wall: Optional[bool] = None
    infra_sports_court: Optional[bool] = None
    infra_barbecue_zone: Optional[bool] = None
    infra_pool: Optional[bool] = None
    infra_living_space: Optional[bool] = None
    infra_pet_area: Optional[bool] = None
    infra_kids_area: Optional[bool] = None
    infra_grass_area: Optional[bool] = None
    infra_gourmet_area: Optional[bool] = None
    infra_parking_lot: Optional[bool] = None
    infra_market_nearby: Optional[bool] = None
    infra_party_saloon: Optional[bool] = None
    infra_lounge_bar: Optional[bool] = None
    infra_home_office: Optional[bool] = None
    infra_lagoon: Optional[bool] = None
    infra_generates_power: Optional[bool] = None
    infra_woods: Optional[bool] = None
    infra_vegetable_garden: Optional[bool] = None
    infra_nature_trail: Optional[bool] = None
    infra_gardens: Optional[bool] = None
    infra_heliport: Optional[bool] = None
    infra_gym: Optional[bool] = None
    infra_interactive_lobby: Optional[bool] = None

    # Pipeline-only
    medias: List[str] = Field(default_factory=list)
    platform_metadata: Dict[str, Any] = Field(default_factory=dict)
    scraped_at: Optional[str] = None
    source_url: Optional[str] = None

    def field_values(self) -> Dict[str, Any]:
        """Listing columns that were actually extracted."""
        return self.model_dump(exclude_none=True, exclude=PIPELINE_ONLY_FIELDS)

    def merged_with(self, other: "ScrapedFields") -> "ScrapedFields":
        """Copy of self where other's extracted fields win."""
        data = self.model_dump(exclude_none=True)
        data.update(other.model_dump(exclude_none=True, exclude={"medias", "platform_metadata"}))
        data["medias"] = other.medias or self.medias
        data["platform_metadata"] = {**self.platform_metadata, **other.platform_metadata}
        return ScrapedFields(**data)


class MediaRecord(BaseModel):
    """Media row created by the scraper (shape consumed by the media store)."""
    kondo_id: int
    filename: str
    storage_url: str
    type: MediaType
    status: MediaStatus = MediaStatus.DRAFT
    relevance_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    source_url: Optional[str] = None
