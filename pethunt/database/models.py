"""
Database models for the pet hunting backend.

Uses SQLModel (SQLAlchemy + Pydantic) for type-safe database access.
Rows are mapped to and from the core dataclasses by the repositories.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlmodel import SQLModel, Field, Column, JSON
from sqlalchemy import DateTime, UniqueConstraint


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def timestamp_field(**kwargs):
    """Timezone-aware timestamp column defaulting to now."""
    return Field(default_factory=utc_now, sa_type=DateTime(timezone=True), **kwargs)


# =============================================================================
# ACCOUNT
# =============================================================================

class Account(SQLModel, table=True):
    """
    A player account.

    The id doubles as the owner id carried by every pet, session and item.
    """
    __tablename__ = "accounts"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    username: str = Field(index=True, unique=True, min_length=3, max_length=32)

    # Account progression (separate from pet XP)
    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)

    hunt_tickets: int = Field(default=0, ge=0)

    # Counters
    pet_count: int = Field(default=0, ge=0)
    completed_hunts: int = Field(default=0, ge=0)

    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()


class AccountCreate(SQLModel):
    """Model for creating an account."""
    username: str = Field(min_length=3, max_length=32)


class InventoryItem(SQLModel, table=True):
    """Stack of a consumable (capture tools, evolution stones) held by an account."""
    __tablename__ = "inventory_items"
    __table_args__ = (UniqueConstraint("owner_id", "item_id", name="uq_inventory_owner_item"),)

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    owner_id: str = Field(index=True, foreign_key="accounts.id")
    item_id: str = Field(index=True)
    quantity: int = Field(default=0, ge=0)

    updated_at: datetime = timestamp_field()


# =============================================================================
# PETS
# =============================================================================

class Pet(SQLModel, table=True):
    """
    Persistent owned pet.

    Combat stats are stored denormalized but always equal the progression
    formula's output for species, IVs, level and rarity.
    """
    __tablename__ = "pets"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    owner_id: str = Field(index=True, foreign_key="accounts.id")

    species: str = Field(index=True)
    nickname: Optional[str] = None
    rarity: str = Field(default="common")
    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)
    evolution_stage: int = Field(default=1, ge=1)

    hp: int = Field(default=0, ge=0)
    max_hp: int = Field(default=0)
    attack: int = Field(default=0)
    defense: int = Field(default=0)
    speed: int = Field(default=0)

    # Individual modifiers (0-15 each), fixed at capture
    iv_hp: int = Field(default=0, ge=0, le=15)
    iv_attack: int = Field(default=0, ge=0, le=15)
    iv_defense: int = Field(default=0, ge=0, le=15)
    iv_speed: int = Field(default=0, ge=0, le=15)

    # Bumped on every update; writes are compare-and-set on it
    version: int = Field(default=0)

    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()


# =============================================================================
# HUNTING
# =============================================================================

class HuntSessionRecord(SQLModel, table=True):
    """
    An owner's live hunt.

    At most one row per owner. `version` is bumped on every save and
    checked on write so a stale copy can never overwrite a newer one.
    """
    __tablename__ = "hunt_sessions"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    owner_id: str = Field(unique=True, index=True, foreign_key="accounts.id")
    region_id: str
    moves_remaining: int = Field(ge=0)

    # Wild encounters in discovery order
    encounters: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    version: int = Field(default=0)

    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()


class HuntHistory(SQLModel, table=True):
    """Settled hunt, kept for statistics."""
    __tablename__ = "hunt_history"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    owner_id: str = Field(index=True)
    session_id: str = Field(index=True)
    region_id: str

    pets_caught: int = Field(default=0)
    total_encounters: int = Field(default=0)
    moves_forfeited: int = Field(default=0)
    auto_settled: bool = Field(default=False)

    completed_at: datetime = timestamp_field()


# =============================================================================
# QUESTS
# =============================================================================

class QuestProgress(SQLModel, table=True):
    """Running counter per quest event type (catches, completed hunts, ...)."""
    __tablename__ = "quest_progress"
    __table_args__ = (UniqueConstraint("owner_id", "event_type", name="uq_quest_owner_event"),)

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    owner_id: str = Field(index=True)
    event_type: str = Field(index=True)
    progress: int = Field(default=0, ge=0)

    updated_at: datetime = timestamp_field()
