"""Gift page templates"""

from typing import Dict, Optional, Union

from ..models.gift import Occasion

TEMPLATE_MINIMALIST_LOVE = "minimalist-love"
TEMPLATE_GRAND_ANNIVERSARY = "grand-anniversary"
TEMPLATE_BIRTHDAY_CELEBRATION = "birthday-celebration"
TEMPLATE_ROMANTIC_EVENING = "romantic-evening"

TEMPLATES: Dict[str, Dict[str, str]] = {
    TEMPLATE_MINIMALIST_LOVE: {
        "name": "Minimalist Love",
        "description": "Clean, elegant design with subtle animations",
    },
    TEMPLATE_GRAND_ANNIVERSARY: {
        "name": "Grand Anniversary",
        "description": "Luxurious gold accents for milestone celebrations",
    },
    TEMPLATE_BIRTHDAY_CELEBRATION: {
        "name": "Birthday Celebration",
        "description": "Vibrant and joyful with playful elements",
    },
    TEMPLATE_ROMANTIC_EVENING: {
        "name": "Romantic Evening",
        "description": "Deep, intimate colors for Valentine's Day",
    },
}

OCCASION_TEMPLATES = {
    Occasion.BIRTHDAY.value: TEMPLATE_BIRTHDAY_CELEBRATION,
    Occasion.ANNIVERSARY.value: TEMPLATE_GRAND_ANNIVERSARY,
    Occasion.VALENTINES.value: TEMPLATE_MINIMALIST_LOVE,
}


def is_known_template(template_id: Optional[str]) -> bool:
    return template_id in TEMPLATES


def template_for_occasion(occasion: Optional[Union[Occasion, str]]) -> str:
    """Default template for an occasion; anything unrecognised gets minimalist-love"""
    if isinstance(occasion, Occasion):
        occasion = occasion.value
    return OCCASION_TEMPLATES.get(occasion or "", TEMPLATE_MINIMALIST_LOVE)


def resolve_template(template_id: Optional[str], occasion: Optional[Union[Occasion, str]]) -> str:
    """An explicit known template wins; otherwise derive from the occasion"""
    if template_id and is_known_template(template_id):
        return template_id
    return template_for_occasion(occasion)
