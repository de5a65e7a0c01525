"""Ritual catalogue: element tags and XP reward per ritual, loaded from YAML."""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import yaml

from .analytics import DEFAULT_RITUAL_XP, Element, coerce_elements

logger = logging.getLogger(__name__)

RITUALS_FILE = os.path.join(os.path.dirname(__file__), "data", "rituals.yml")


@dataclass(frozen=True)
class RitualDefinition:
    ritual_id: str
    name: str
    elements: Tuple[Element, ...]
    xp_reward: int = DEFAULT_RITUAL_XP


_rituals: Optional[Dict[str, RitualDefinition]] = None


def load_rituals(path: str = RITUALS_FILE) -> Dict[str, RitualDefinition]:
    """Load the ritual catalogue from a YAML file, keyed by ritual id."""
    global _rituals
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load rituals from {path}: {e}")
        raw = {}

    rituals = {}
    for ritual_id, data in raw.items():
        try:
            elements = tuple(coerce_elements(data.get("elements") or []))
            xp_reward = int(data.get("xp", DEFAULT_RITUAL_XP))
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Skipping ritual '{ritual_id}': {e}")
            continue
        if xp_reward <= 0:
            logger.warning(f"Skipping ritual '{ritual_id}': non-positive xp {xp_reward}")
            continue
        rituals[str(ritual_id)] = RitualDefinition(
            ritual_id=str(ritual_id),
            name=data.get("name", str(ritual_id)),
            elements=elements,
            xp_reward=xp_reward,
        )
    _rituals = rituals
    logger.info(f"Loaded {len(rituals)} rituals")
    return rituals


def get_rituals() -> Dict[str, RitualDefinition]:
    if _rituals is None:
        return load_rituals()
    return _rituals


def get_ritual(ritual_id: str) -> RitualDefinition:
    """Catalogue entry for ``ritual_id``; unknown ids are spirit work at the default XP."""
    ritual = get_rituals().get(ritual_id)
    if ritual is None:
        return RitualDefinition(ritual_id, ritual_id, (Element.SPIRIT,), DEFAULT_RITUAL_XP)
    return ritual
