"""
Surface Material Classes

Material classes tagged on city surfaces by the scene layer. Each class
resolves to an RF reflection band used by the path-loss model.
"""

from enum import Enum
from typing import Dict, Tuple


class MaterialClass(Enum):
    """Material class of a city surface."""
    WATER = "water"
    TERRAIN = "terrain"
    GLASS = "glass"
    CONCRETE_LOW = "concrete_low"
    CONCRETE_MID = "concrete_mid"
    EMISSIVE_HIGH_RISE = "emissive_high_rise"
    METAL = "metal"


# Reflection loss band (dB at normal incidence, dB at grazing incidence)
GLASS_BAND_DB = (10.0, 20.0)
METAL_BAND_DB = (0.0, 3.0)
CONCRETE_BAND_DB = (3.0, 9.0)

REFLECTION_BANDS_DB: Dict[MaterialClass, Tuple[float, float]] = {
    MaterialClass.GLASS: GLASS_BAND_DB,
    MaterialClass.METAL: METAL_BAND_DB,
    # Emissive high-rise facades are treated as concrete for RF purposes
    MaterialClass.EMISSIVE_HIGH_RISE: CONCRETE_BAND_DB,
    MaterialClass.CONCRETE_LOW: CONCRETE_BAND_DB,
    MaterialClass.CONCRETE_MID: CONCRETE_BAND_DB,
    MaterialClass.TERRAIN: CONCRETE_BAND_DB,
    MaterialClass.WATER: CONCRETE_BAND_DB,
}


def reflection_band(material: MaterialClass) -> Tuple[float, float]:
    """Reflection loss band for a material, concrete when unknown."""
    return REFLECTION_BANDS_DB.get(material, CONCRETE_BAND_DB)
