"""Pydantic models for the inventory and config documents.

These models are the wire contract with the document store. Field names are
snake_case in Python and camelCase in the stored JSON (``lowStockThreshold``,
``assignedMemberId``...), so documents written by older clients load as-is.
"""

from __future__ import annotations

import re
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class Category(str, Enum):
    GENERAL = "General"
    PRINTING_3D = "3D Printing"
    CERAMICS = "Ceramics"
    TEXTILES = "Textiles/Fine Arts"
    WOODSHOP = "Woodshop"
    ELECTRONICS = "Electronics"


class Unit(str, Enum):
    UNITS = "units"
    ROLLS = "rolls"
    SHEETS = "sheets"
    KG = "kg"
    G = "g"
    LBS = "lbs"
    OZ = "oz"
    M = "m"
    FT = "ft"
    L = "L"
    ML = "mL"
    BOTTLES = "bottles"
    CANS = "cans"
    BOXES = "boxes"
    SPOOLS = "spools"


def new_id() -> str:
    return uuid.uuid4().hex


def _coerce_id(value: Any) -> Any:
    # Older documents used numeric ids (timestamp + random fraction).
    if value is None:
        return ""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON stored in the document store."""
        return self.model_dump(by_alias=True, mode="json")


class Item(_WireModel):
    """One stock-tracked supply."""

    id: str
    name: str
    category: Category = Category.GENERAL
    quantity: float = Field(default=0, ge=0)
    unit: Unit = Unit.UNITS
    low_stock_threshold: float = Field(default=5, ge=0)
    supplier: str = ""
    supplier_url: str = ""
    notes: str = ""
    assigned_member_id: str = ""

    @field_validator("id", "assigned_member_id", mode="before")
    @classmethod
    def _ids_as_strings(cls, value: Any) -> Any:
        return _coerce_id(value)

    @field_validator("supplier", "supplier_url", "notes", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @classmethod
    def create(cls, **fields: Any) -> Item:
        """Build a new item with a freshly assigned id."""
        fields.pop("id", None)
        return cls(id=new_id(), **fields)


_MENTION_RE = re.compile(r"^<@!?(\d+)>$")


def normalize_discord_id(raw: str) -> str:
    """Strip a pasted ``<@123>`` / ``<@!123>`` mention down to the bare id."""
    raw = raw.strip()
    match = _MENTION_RE.match(raw)
    return match.group(1) if match else raw


class Member(_WireModel):
    """A notification recipient."""

    id: str
    name: str
    discord_id: str = ""
    email: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value: Any) -> Any:
        return _coerce_id(value)

    @field_validator("discord_id", "email", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @model_validator(mode="after")
    def _needs_a_channel(self) -> Member:
        if not self.discord_id and not self.email:
            raise ValueError("member needs a discordId or an email")
        return self

    @property
    def mention(self) -> str | None:
        return f"<@{self.discord_id}>" if self.discord_id else None

    @classmethod
    def create(cls, name: str, discord_id: str = "", email: str = "") -> Member:
        name = name.strip()
        if not name:
            raise ValueError("member name is required")
        return cls(
            id=new_id(),
            name=name,
            discord_id=normalize_discord_id(discord_id),
            email=email.strip(),
        )


class EmailChannelConfig(_WireModel):
    service_id: str = ""
    template_id: str = ""
    public_key: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.service_id and self.template_id and self.public_key)


class InventoryDocument(BaseModel):
    """Raw inventory document: item dicts plus the write stamp."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    writer: str | None = None
    seq: int | None = None

    model_config = ConfigDict(extra="ignore")
