"""
Canonical parameters, unit conversion and measurand resolution.

Providers describe what they measure in their own words and units. A lookup
such as {"CO": ("co", "ppb")} is resolved here into a Measurand that knows the
canonical parameter, its canonical unit and how to convert raw values into it.
"""

# Imports
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

# =============================================================================
# CANONICAL PARAMETERS
# =============================================================================
CANONICAL_UNITS: Dict[str, str] = {
    # particulate mass
    "pm": "µg/m³",
    "pm1": "µg/m³",
    "pm25": "µg/m³",
    "pm25-old": "µg/m³",
    "pm4": "µg/m³",
    "pm10": "µg/m³",
    "pm100": "µg/m³",
    "bc": "µg/m³",
    "ec": "µg/m³",
    "oc": "µg/m³",
    "cl": "µg/m³",
    "no3": "µg/m³",
    "so4": "µg/m³",
    # gases
    "o3": "ppm",
    "ozone": "ppm",
    "co": "ppm",
    "co2": "ppm",
    "no": "ppm",
    "no2": "ppm",
    "nox": "ppm",
    "so2": "ppm",
    "ch4": "ppm",
    "nh3": "ppm",
    "h2s": "ppm",
    "voc": "iaq",
    # particle counts
    "pn": "particles/cm³",
    "ufp": "particles/cm³",
    "um003": "particles/cm³",
    "um005": "particles/cm³",
    "um010": "particles/cm³",
    "um025": "particles/cm³",
    "um050": "particles/cm³",
    "um100": "particles/cm³",
    # meteorology
    "temperature": "c",
    "ambient_temp": "c",
    "dewpoint": "c",
    "humidity": "%",
    "relativehumidity": "%",
    "rh": "%",
    "pressure": "hPa",
    "wind_speed": "m/s",
    "wind_direction": "deg",
    "precipitation": "mm",
    "solar_radiation": "W/m²",
}

# =============================================================================
# UNIT CONVERSION
# =============================================================================
Converter = Callable[[float], float]


def _identity(value: float) -> float:
    return value


def _f_to_c(value: float) -> float:
    return (value - 32) * 5 / 9


def _divide_by(divisor: float) -> Converter:
    return lambda value: value / divisor


def _multiply_by(factor: float) -> Converter:
    return lambda value: value * factor


# provider_unit -> {canonical_unit -> converter}
CONVERSIONS: Dict[str, Dict[str, Converter]] = {
    "ppb": {"ppm": _divide_by(1000)},
    "ppm": {"ppb": _multiply_by(1000)},
    "f": {"c": _f_to_c},
    "°F": {"c": _f_to_c},
    "ng/m³": {"µg/m³": _divide_by(1000)},
    "pp100ml": {"particles/cm³": _divide_by(100)},
    "pa": {"hPa": _divide_by(100)},
}


def resolve_converter(provider_unit: str, canonical_unit: str) -> Converter:
    """
    Returns the function converting values from provider_unit to canonical_unit.

    Unregistered pairs (including unregistered provider units) resolve to the
    identity function, which lets a provider report values that are already
    canonical.
    """
    return CONVERSIONS.get(provider_unit, {}).get(canonical_unit, _identity)


# =============================================================================
# MEASURANDS
# =============================================================================
@dataclass(frozen=True)
class Measurand:
    """A provider parameter resolved against the canonical table."""

    # How the provider names it, e.g. "CO"
    input_param: str
    # Canonical name, e.g. "co"
    parameter: str
    # Canonical unit, e.g. "ppm"
    unit: str
    # Unit the provider reports in, e.g. "ppb"
    provider_unit: str

    @property
    def normalized_unit(self) -> str:
        return self.unit

    def normalize_value(self, raw) -> float:
        """Converts a raw provider value into the canonical unit. Raises ValueError if not a finite number."""
        value = float(raw)
        if not math.isfinite(value):
            raise ValueError(f"Value {raw} is not a finite number")
        return resolve_converter(self.provider_unit, self.unit)(value)


def get_supported_measurands(lookups: Dict[str, Tuple[str, str]]) -> List[Measurand]:
    """
    Resolves a provider lookup into the measurands the system supports.

    Args:
        lookups (dict): Maps input parameter to (parameter, provider_unit),
            e.g. {"CO": ("co", "ppb")}.

    Returns:
        list[Measurand]: One measurand per lookup entry whose parameter is
        canonical. Unsupported entries are dropped.
    """
    measurands = []
    for input_param, (parameter, provider_unit) in lookups.items():
        unit = CANONICAL_UNITS.get(parameter)
        if unit is None:
            logging.debug(f"Ignoring unsupported parameter: {parameter}")
            continue
        measurands.append(
            Measurand(
                input_param=input_param,
                parameter=parameter,
                unit=unit,
                provider_unit=provider_unit,
            )
        )

    if lookups and not measurands:
        logging.warning("No measurands supported.")

    return measurands


def get_indexed_supported_measurands(
    lookups: Dict[str, Tuple[str, str]],
) -> Dict[str, Measurand]:
    """Same as get_supported_measurands, keyed by input parameter."""
    return {m.input_param: m for m in get_supported_measurands(lookups)}
