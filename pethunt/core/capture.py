"""
Capture resolution.

success probability = clamp(tool base rate * rarity modifier, 0, 1);
a capture succeeds when a uniform draw u in [0, 1) is below it.
"""
from typing import Dict, Optional
import random


TOOL_BASIC = "basic"
TOOL_IMPROVED = "improved"
TOOL_PREMIUM = "premium"

TOOL_BASE_RATES: Dict[str, float] = {
    TOOL_BASIC: 0.4,
    TOOL_IMPROVED: 0.6,
    TOOL_PREMIUM: 0.8,
}

# Legacy item ids
TOOL_ALIASES: Dict[str, str] = {
    "pokeball": TOOL_BASIC,
    "greatball": TOOL_IMPROVED,
    "ultraball": TOOL_PREMIUM,
}

RARITY_CAPTURE_MODIFIERS: Dict[str, float] = {
    "common": 1.2,
    "uncommon": 1.0,
    "rare": 0.7,
    "epic": 0.5,
    "legendary": 0.3,
}

DEFAULT_TOOL_RATE = 0.4


def normalize_tool(tool: str) -> str:
    """Map legacy ids onto tool strengths; unknown tools pass through lowercased."""
    key = (tool or "").lower()
    return TOOL_ALIASES.get(key, key)


def capture_probability(tool: str, rarity: str) -> float:
    base_rate = TOOL_BASE_RATES.get(normalize_tool(tool), DEFAULT_TOOL_RATE)
    modifier = RARITY_CAPTURE_MODIFIERS.get((rarity or "").lower(), 1.0)
    return min(1.0, max(0.0, base_rate * modifier))


def capture_succeeds(probability: float, u: float) -> bool:
    return u < probability


def resolve_capture(tool: str, rarity: str, rng: Optional[random.Random] = None) -> bool:
    """Draw once from `rng` and decide the capture."""
    rng = rng or random
    return capture_succeeds(capture_probability(tool, rarity), rng.random())
