"""Narrative analysis of regional weather.

Narratives come from the text generation API when a credential and budget are
available, and from a deterministic template otherwise. Both paths produce the
same ``NarrativeAnalysis`` schema; ``fallback`` tells them apart.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from regional_weather.weather.client import TextGenerationClient, TextGenerationError
from regional_weather.weather.models import (
    DetailedAnalysis, NarrativeAnalysis, RegionalData, WeatherSnapshot
)
from regional_weather.weather.regions import Region
from regional_weather.weather.usage import UsageTracker

logger = logging.getLogger(__name__)

FALLBACK_MODEL = "rule-based-fallback"
SUMMARY_LENGTH = 250
ADVISORY_LENGTH = 200
MIN_CONTENT_LENGTH = 10
MAX_RECOMMENDATIONS = 3


class Section(str, Enum):
    TEMPERATURE = "temperature_characteristics"
    HUMIDITY = "humidity_comfort"
    ACTIVITIES = "activity_recommendations"
    HEALTH = "health_safety"
    OUTLOOK = "future_outlook"


# Header cues, checked in order; the first match wins
SECTION_MARKERS = (
    (Section.TEMPERATURE, ("🌡",), ("temperature",)),
    (Section.HUMIDITY, ("💧",), ("humidity", "comfort")),
    (Section.ACTIVITIES, ("🏃",), ("activit",)),
    (Section.HEALTH, ("⚠",), ("health", "safety")),
    (Section.OUTLOOK, ("🎯",), ("outlook", "forecast")),
)

_HEADER_SHAPE = re.compile(r"^(#+|\*\*|\d+[.)])")
_BULLET = re.compile(r"^[-•*]\s*")


@dataclass
class SectionBuffer:
    """Text collected per section by the splitter."""
    prose: Dict[Section, List[str]] = field(default_factory=lambda: {s: [] for s in Section})
    activities: List[str] = field(default_factory=list)

    def text(self, section: Section) -> str:
        return " ".join(self.prose[section])


def match_header(line: str) -> Optional[Section]:
    """Return the section a header line opens, or None for content lines.

    A line opens a section when it carries the section's emoji, or when it is
    shaped like a header and names the section's keyword.
    """
    lowered = line.lower()
    looks_like_header = _HEADER_SHAPE.match(line) is not None
    for section, emojis, keywords in SECTION_MARKERS:
        if any(emoji in line for emoji in emojis):
            return section
        if looks_like_header and any(keyword in lowered for keyword in keywords):
            return section
    return None


def split_sections(text: str) -> SectionBuffer:
    """Split generated text into sections. Never raises."""
    buffer = SectionBuffer()
    current: Optional[Section] = None

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue

        header = match_header(line)
        if header is not None:
            current = header
            continue

        if current is None or len(line) <= MIN_CONTENT_LENGTH:
            # Preamble before the first header, or too short to be content
            continue

        if current is Section.ACTIVITIES:
            if _BULLET.match(line):
                item = _BULLET.sub("", line).strip()
                if item:
                    buffer.activities.append(item)
        else:
            buffer.prose[current].append(line)

    return buffer


def build_prompt(region: Region, regional_data: RegionalData) -> str:
    """Build the text generation prompt for one region."""
    temperature = regional_data.temperature
    humidity = regional_data.humidity
    rainfall = regional_data.rainfall

    if temperature.average is not None:
        temp_info = (
            f"average {temperature.average:.1f}°C "
            f"({temperature.min:.1f}°C to {temperature.max:.1f}°C)"
        )
    else:
        temp_info = "no data"

    if humidity.average is not None:
        humidity_info = (
            f"average {round(humidity.average)}% "
            f"({round(humidity.min)}% to {round(humidity.max)}%)"
        )
    else:
        humidity_info = "no data"

    if rainfall.total > 0:
        rainfall_info = (
            f"total {rainfall.total:.1f}mm "
            f"({rainfall.active_stations}/{rainfall.count} stations reporting rain)"
        )
    else:
        rainfall_info = "no rainfall"

    wind = regional_data.wind
    if wind.average_speed is not None:
        wind_info = f"average {wind.average_speed:.1f} m/s"
        if wind.dominant_direction:
            wind_info += f", mostly from {wind.dominant_direction}"
    else:
        wind_info = "no data"

    stations = regional_data.stations_used
    characteristics = ", ".join(region.characteristics)

    return f"""You are a local weather analyst for the {region.name} area of Singapore. Using the area's characteristics and the current observations below, write a detailed and accurate analysis.

🏙️ Area: {region.name} ({region.area})
📍 Characteristics: {characteristics}
🎯 Analysis focus: {", ".join(region.analysis_focus)}

📊 Current observations for {region.name}:
- 🌡️ Temperature: {temp_info}
- 💧 Humidity: {humidity_info}
- 🌧️ Rainfall: {rainfall_info}
- 🌬️ Wind: {wind_info}
- 📡 Stations: {len(stations)} ({", ".join(stations) or "none"})

Write the analysis in exactly these five sections, each starting with its header line:

1. 🌡️ {region.name} temperature characteristics (3-4 sentences)
How the area's geography and urban form ({characteristics}) shape temperature, and how it compares with the rest of Singapore.

2. 💧 {region.name} humidity and comfort (3-4 sentences)
Humidity, apparent temperature and discomfort for people in the area.

3. 🏃 {region.name} recommended activities (4-5 bullet points starting with "-")
Concrete suggestions by time of day, and activities to avoid.

4. ⚠️ {region.name} health and safety advice (3-4 sentences)
Health risks under current conditions, with advice for vulnerable groups.

5. 🎯 {region.name} outlook and preparation (2-3 sentences)
Expected conditions over the coming hours and how residents and visitors should prepare.

Keep the analysis specific to {region.name}, scientifically sound and practical."""


def parse_narrative(text: str, region: Region, model: str) -> NarrativeAnalysis:
    """Turn generated text into a NarrativeAnalysis. Never raises."""
    buffer = split_sections(text)

    detail = DetailedAnalysis(
        temperature_characteristics=buffer.text(Section.TEMPERATURE),
        humidity_comfort=buffer.text(Section.HUMIDITY),
        activity_recommendations=list(buffer.activities),
        health_safety=buffer.text(Section.HEALTH),
        future_outlook=buffer.text(Section.OUTLOOK),
    )

    summary = " ".join(
        part for part in (detail.temperature_characteristics, detail.humidity_comfort) if part
    )[:SUMMARY_LENGTH]

    return NarrativeAnalysis(
        summary=summary or f"Current weather conditions in {region.name} have been analysed.",
        detailed_analysis=detail,
        recommendations=buffer.activities[:MAX_RECOMMENDATIONS],
        health_advisory=(
            detail.health_safety[:ADVISORY_LENGTH]
            or "Take care of your health under the current weather conditions."
        ),
        activity_suggestions=list(buffer.activities),
        fallback=False,
        model=model,
    )


def fallback_narrative(region: Region) -> NarrativeAnalysis:
    """Deterministic narrative from the region's name and first characteristic."""
    name = region.name
    trait = region.characteristics[0] if region.characteristics else "local"

    return NarrativeAnalysis(
        summary=(
            f"Current weather conditions in {name} have been analysed, "
            f"reflecting its {trait} character."
        ),
        detailed_analysis=DetailedAnalysis(
            temperature_characteristics=f"{name} shows temperature patterns typical of its {trait} character.",
            humidity_comfort=f"Humidity and apparent temperature in {name} have been assessed for comfort.",
            activity_recommendations=["Prefer indoor activities", "Stay hydrated", "Rest in the shade"],
            health_safety=f"Take routine precautions for the current weather in {name}.",
            future_outlook=f"Conditions in {name} are expected to follow the usual daily pattern.",
        ),
        recommendations=["Dress for the weather", "Drink water regularly", "Plan outdoor time carefully"],
        health_advisory="Take care of your health under the current weather conditions.",
        activity_suggestions=["Indoor exercise", "Visit a cafe", "Spend time in a shopping mall"],
        fallback=True,
        model=FALLBACK_MODEL,
    )


class NarrativeAnalyzer:
    """Produces a narrative per region, falling back to the template when needed."""

    def __init__(
        self,
        client: Optional[TextGenerationClient] = None,
        usage: Optional[UsageTracker] = None
    ):
        """Initialize the analyzer.

        Args:
            client: Text generation client; None means offline (always fallback)
            usage: Daily budget; None means calls are not budgeted
        """
        self.client = client
        self.usage = usage

    async def analyze(self, region: Region, regional_data: RegionalData,
                      snapshot: WeatherSnapshot) -> NarrativeAnalysis:
        """Analyze one region.

        Args:
            region: Region being analyzed
            regional_data: Aggregated readings for the region
            snapshot: Validated snapshot the data came from

        Returns:
            Generated narrative, or the deterministic fallback
        """
        if self.client is None:
            logger.info(f"No text generation credential, using fallback for {region.region_id}")
            return fallback_narrative(region)

        if self.usage is not None and not await self.usage.acquire():
            logger.warning(f"Daily API limit reached, using fallback for {region.region_id}")
            return fallback_narrative(region)

        prompt = build_prompt(region, regional_data)
        logger.info(f"Requesting narrative for {region.name} (snapshot {snapshot.timestamp})")

        try:
            text = await self.client.generate(prompt)
        except TextGenerationError as e:
            logger.error(f"Text generation failed for {region.region_id}: {e}")
            return fallback_narrative(region)

        return parse_narrative(text, region, model=self.client.model)
