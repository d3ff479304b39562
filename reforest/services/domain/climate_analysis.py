"""
Domain service: climate summarisation and site suitability.

Turns raw forecast series into a ClimateProfile and combines it with the
image analysis into a coarse suitability assessment.
"""
from typing import Any, Dict, List, Optional
import logging

import numpy as np

from reforest.domain.models import (
    ClimateChallenge,
    ClimateProfile,
    MoistureLevel,
    RawClimate,
    SiteAnalysis,
    SuitabilityAssessment,
    SuitabilityWarning,
    TemperatureStats,
    VegetationLevel,
)


logger = logging.getLogger(__name__)

DEFAULT_ANNUAL_RAINFALL = 800
DEFAULT_SOIL_MOISTURE = 0.3


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and np.isfinite(value)


def _series(daily: Dict[str, List[Any]], key: str) -> Optional[np.ndarray]:
    # Gaps and non-numeric entries are dropped rather than failing the summary
    values = [v for v in (daily.get(key) or []) if _is_number(v)]
    if not values:
        return None
    return np.asarray(values, dtype=float)


def _current(current: Dict[str, Any], key: str, default: float) -> float:
    value = current.get(key)
    return float(value) if _is_number(value) else default


def annual_rainfall(daily: Dict[str, List[Any]]) -> float:
    """Extrapolate mean daily precipitation to a yearly total in mm."""
    precipitation = _series(daily, "precipitation_sum")
    if precipitation is None:
        return DEFAULT_ANNUAL_RAINFALL
    return float(round(precipitation.mean() * 365))


def temperature_stats(daily: Dict[str, List[Any]]) -> TemperatureStats:
    maxima = _series(daily, "temperature_2m_max")
    minima = _series(daily, "temperature_2m_min")
    if maxima is None or minima is None:
        return TemperatureStats()
    avg_max = maxima.mean()
    avg_min = minima.mean()
    return TemperatureStats(
        average=round((avg_max + avg_min) / 2),
        max=round(maxima.max()),
        min=round(minima.min()),
        avg_max=round(avg_max),
        avg_min=round(avg_min),
    )


def classify_rainfall(rainfall: float) -> str:
    if rainfall < 400:
        return "arid"
    if rainfall < 800:
        return "semi-arid"
    if rainfall < 1500:
        return "sub-humid"
    if rainfall < 2000:
        return "humid"
    return "very-humid"


def classify_temperature(average: float) -> str:
    if average < 10:
        return "cool"
    if average < 20:
        return "temperate"
    if average < 28:
        return "warm"
    return "hot"


def classify_moisture(value: float) -> MoistureLevel:
    if value < 0.2:
        return MoistureLevel.DRY
    if value < 0.4:
        return MoistureLevel.MODERATE
    if value < 0.6:
        return MoistureLevel.MOIST
    return MoistureLevel.WET


def best_planting_months(rainfall: float) -> List[str]:
    if rainfall < 800:
        # Plant at the onset of the short rainy season
        return ["March", "April", "May"]
    if rainfall > 1500:
        return ["January", "February", "August"]
    return ["March", "April", "May", "October", "November"]


def climate_challenges(climate_type: str, temp_zone: str, rainfall: float) -> List[ClimateChallenge]:
    challenges = []
    if climate_type in ("arid", "semi-arid"):
        challenges.append(ClimateChallenge(
            type="drought",
            severity="high",
            description="Low rainfall requires drought-resistant species",
            mitigation="Use drip irrigation during establishment phase",
        ))
    if temp_zone == "hot":
        challenges.append(ClimateChallenge(
            type="heat-stress",
            severity="medium",
            description="High temperatures may stress young seedlings",
            mitigation="Provide shade and mulch around seedlings",
        ))
    if rainfall > 2000:
        challenges.append(ClimateChallenge(
            type="waterlogging",
            severity="medium",
            description="Excessive rainfall may cause root rot",
            mitigation="Ensure good drainage and select flood-tolerant species",
        ))
    if temp_zone == "cool":
        challenges.append(ClimateChallenge(
            type="frost",
            severity="medium",
            description="Low temperatures may damage young plants",
            mitigation="Plant frost-hardy species and protect seedlings",
        ))
    return challenges


def summarize(raw: RawClimate) -> ClimateProfile:
    """Summarise raw forecast series into a ClimateProfile."""
    rainfall = annual_rainfall(raw.daily)
    stats = temperature_stats(raw.daily)
    climate_type = classify_rainfall(rainfall)
    temp_zone = classify_temperature(stats.average)

    moisture_value = _current(raw.current, "soil_moisture_0_to_1cm", DEFAULT_SOIL_MOISTURE)
    current_temperature = _current(raw.current, "temperature_2m", stats.average)

    if stats.average > 10:
        growing_season = 12
    else:
        growing_season = max(0, round(stats.average / 10 * 12))

    profile = ClimateProfile(
        current_temperature=float(current_temperature),
        annual_rainfall=rainfall,
        soil_moisture=classify_moisture(float(moisture_value)),
        soil_moisture_value=float(moisture_value),
        best_months=best_planting_months(rainfall),
        climate_type=climate_type,
        temp_zone=temp_zone,
        temperature_stats=stats,
        growing_season_months=growing_season,
        challenges=climate_challenges(climate_type, temp_zone, rainfall),
        elevation=raw.elevation,
        is_synthetic=raw.is_synthetic,
    )
    logger.info(
        f"Climate: {profile.climate_type}/{profile.temp_zone}, "
        f"{profile.annual_rainfall:.0f}mm, soil moisture {profile.soil_moisture.value}"
        + (" (synthetic)" if profile.is_synthetic else "")
    )
    return profile


def assess_suitability(climate: ClimateProfile, site: SiteAnalysis) -> SuitabilityAssessment:
    """Coarse 0-100 site suitability from climate and vegetation cover."""
    score = 70.0
    warnings: List[SuitabilityWarning] = []
    advice: List[str] = []

    average = climate.temperature_stats.average
    if average < 10:
        score -= 15
        warnings.append(SuitabilityWarning(
            type="cold-climate",
            severity="medium",
            message="Cold climate may limit tree species options",
        ))
        advice.append("Focus on cold-hardy species")
    elif average > 30:
        score -= 10
        warnings.append(SuitabilityWarning(
            type="hot-climate",
            severity="medium",
            message="Hot climate requires drought-resistant species",
        ))
        advice.append("Choose heat and drought tolerant trees")
    else:
        score += 10

    rainfall = climate.annual_rainfall
    if rainfall < 500:
        score -= 20
        warnings.append(SuitabilityWarning(
            type="low-rainfall",
            severity="high",
            message="Low rainfall area - irrigation may be necessary",
        ))
        advice.append("Plan for regular irrigation")
    elif rainfall > 2000:
        score -= 5
        warnings.append(SuitabilityWarning(
            type="high-rainfall",
            severity="low",
            message="High rainfall - ensure good drainage",
        ))
    else:
        score += 15

    if site.vegetation_level is VegetationLevel.BARE:
        score += 10
        advice.append("Bare land is ideal for new plantings")
    elif site.vegetation_level is VegetationLevel.DENSE:
        score -= 10
        warnings.append(SuitabilityWarning(
            type="dense-vegetation",
            severity="medium",
            message="Dense existing vegetation may require clearing",
        ))

    score = max(0.0, min(100.0, score))
    if score >= 80:
        level = "excellent"
    elif score >= 65:
        level = "good"
    elif score >= 50:
        level = "moderate"
    else:
        level = "challenging"

    return SuitabilityAssessment(score=score, level=level, warnings=warnings, advice=advice)
