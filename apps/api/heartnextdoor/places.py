"""Google Geocoding + Places lookups used to import local maternal health groups."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import CONFIG
from .errors import ExternalServiceError

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
PLACES_URL = "https://maps.googleapis.com/maps/api/place"
DEFAULT_RADIUS_METERS = 40000
RESULTS_PER_QUERY = 5
QUERY_DELAY_SECONDS = 0.2

# Checked in order against the lowercase place name.
TOPIC_KEYWORDS = [
    ("doula", "doula"),
    ("midwife", "healthcare"),
    ("midwifery", "healthcare"),
    ("birth center", "birth_center"),
    ("birthing center", "birth_center"),
    ("lactation", "breastfeeding"),
    ("breastfeeding", "breastfeeding"),
    ("postpartum", "wellness"),
    ("maternal", "healthcare"),
    ("pregnancy", "wellness"),
    ("prenatal", "wellness"),
    ("ob-gyn", "healthcare"),
    ("obstetrician", "healthcare"),
    ("women's health", "healthcare"),
]

MATERNAL_HEALTH_QUERIES = [
    ("doula services", "doula"),
    ("midwife midwifery", "healthcare"),
    ("birth center birthing center", "birth_center"),
    ("lactation consultant breastfeeding support", "breastfeeding"),
    ("postpartum support group", "wellness"),
    ("prenatal yoga pregnancy wellness", "wellness"),
]

_TOPIC_DESCRIPTIONS = {
    "doula": "Doula services",
    "healthcare": "Maternal healthcare provider",
    "birth_center": "Birth center",
    "breastfeeding": "Lactation and breastfeeding support",
}


def is_configured() -> bool:
    return bool(CONFIG.google_api_key)


async def _get_json(url: str, params: Dict[str, Any]) -> Dict[str, Any]:
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            resp = await client.get(url, params={**params, "key": CONFIG.google_api_key})
        resp.raise_for_status()
        return resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise ExternalServiceError(f"Google request failed: {exc.__class__.__name__}") from exc


def parse_geocode_result(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    status = data.get("status")
    if status == "REQUEST_DENIED":
        logger.error("Geocoding API request denied", extra={"error_message": data.get("error_message")})
        return None
    results = data.get("results") or []
    if status != "OK" or not results:
        return None
    first = results[0]
    location = (first.get("geometry") or {}).get("location") or {}
    city = ""
    state = ""
    for component in first.get("address_components") or []:
        types = component.get("types") or []
        if "locality" in types:
            city = component.get("long_name", "")
        if "administrative_area_level_1" in types:
            state = component.get("short_name", "")
    if "lat" not in location or "lng" not in location:
        return None
    return {"lat": location["lat"], "lng": location["lng"], "city": city, "state": state}


async def geocode_zip(zip_code: str) -> Optional[Dict[str, Any]]:
    if not is_configured():
        return None
    try:
        data = await _get_json(GEOCODE_URL, {"address": zip_code})
    except ExternalServiceError as exc:
        logger.exception("Geocoding request failed", exc_info=exc)
        return None
    coords = parse_geocode_result(data)
    if coords is None:
        logger.info("Could not geocode zip code", extra={"zip_code": zip_code, "status": data.get("status")})
    return coords


async def search_places(
    query: str, lat: float, lng: float, radius_meters: int = DEFAULT_RADIUS_METERS
) -> List[Dict[str, Any]]:
    if not is_configured():
        return []
    try:
        data = await _get_json(
            f"{PLACES_URL}/textsearch/json",
            {"query": query, "location": f"{lat},{lng}", "radius": radius_meters},
        )
    except ExternalServiceError as exc:
        logger.exception("Places text search failed", exc_info=exc)
        return []
    if data.get("status") != "OK":
        return []
    return [
        place
        for place in data.get("results") or []
        if place.get("business_status") != "CLOSED_PERMANENTLY"
    ]


async def get_place_details(place_id: str) -> Optional[Dict[str, Any]]:
    if not is_configured():
        return None
    fields = "name,place_id,formatted_address,formatted_phone_number,website,rating,types"
    try:
        data = await _get_json(f"{PLACES_URL}/details/json", {"place_id": place_id, "fields": fields})
    except ExternalServiceError as exc:
        logger.exception("Place details request failed", exc_info=exc)
        return None
    if data.get("status") != "OK":
        return None
    return data.get("result")


def determine_topic(name: str, types: Optional[List[str]] = None) -> str:
    lowered = name.lower()
    for keyword, topic in TOPIC_KEYWORDS:
        if keyword in lowered:
            return topic
    if types:
        if "hospital" in types:
            return "healthcare"
        if "health" in types:
            return "wellness"
    return "wellness"


async def search_maternal_health_resources(zip_code: str) -> List[Dict[str, Any]]:
    """Candidate groups near a zip code, de-duplicated by place id."""
    if not is_configured():
        logger.warning("Google Places API not configured")
        return []

    coords = await geocode_zip(zip_code)
    if not coords:
        return []

    city, state = coords["city"], coords["state"]
    found: Dict[str, Dict[str, Any]] = {}
    for query, topic in MATERNAL_HEALTH_QUERIES:
        places = await search_places(f"{query} near {city} {state}", coords["lat"], coords["lng"])
        for place in places[:RESULTS_PER_QUERY]:
            place_id = place.get("place_id")
            if not place_id or place_id in found:
                continue
            details = await get_place_details(place_id)
            if not details:
                continue
            description = _TOPIC_DESCRIPTIONS.get(topic, "Pregnancy and postpartum wellness")
            rating = details.get("rating")
            found[place_id] = {
                "name": details.get("name") or place.get("name"),
                "description": f"{description} in {city}, {state}",
                "google_place_id": details.get("place_id") or place_id,
                "website": details.get("website"),
                "contact_phone": details.get("formatted_phone_number"),
                "address": details.get("formatted_address") or place.get("vicinity") or "",
                "city": city,
                "state": state,
                "topic": determine_topic(details.get("name") or "", details.get("types")),
                "rating": round(rating) if rating is not None else None,
            }
        await asyncio.sleep(QUERY_DELAY_SECONDS)
    return list(found.values())
