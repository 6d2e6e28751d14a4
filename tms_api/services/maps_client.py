# tms_api/services/maps_client.py
import logging
from typing import Any, Dict, Optional

import requests

from tms_api.config import settings

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"


def is_configured() -> bool:
    return bool(settings.GOOGLE_MAPS_API_KEY)


def geocode(address: str) -> Dict[str, Any]:
    """
    Resolves an address to coordinates.
    Returns a dict with a boolean 'status' instead of raising, so callers can
    store a warehouse without coordinates.
    """
    if not is_configured():
        logger.warning("Google Maps API key is not configured; skipping geocoding.")
        return {"status": False, "message": "Google Maps API key is not configured",
                "latitude": None, "longitude": None}

    try:
        response = requests.get(GEOCODE_URL, params={"address": address, "key": settings.GOOGLE_MAPS_API_KEY},
                                timeout=10)
    except requests.exceptions.RequestException as e:
        logger.error(f"Geocoding request failed for '{address}': {e}", exc_info=True)
        return {"status": False, "message": "Request to Google API failed", "latitude": None, "longitude": None}

    if response.status_code != 200:
        return {"status": False, "message": "Request to Google API failed", "latitude": None, "longitude": None}

    data = response.json()
    if data.get("status") != "OK" or not data.get("results"):
        return {"status": False, "message": f"Could not find coordinates for location: {address}",
                "latitude": None, "longitude": None}

    location_data = data["results"][0]["geometry"]["location"]
    return {
        "status": True,
        "message": "Location coordinates fetched successfully",
        "location": data["results"][0]["formatted_address"],
        "latitude": location_data["lat"],
        "longitude": location_data["lng"],
    }


def route_distance_km(origin: str, destination: str) -> Optional[float]:
    """Driving distance between two addresses or 'lat,lng' pairs, in km."""
    if not is_configured():
        logger.warning("Google Maps API key is not configured; distance not computed.")
        return None
    if not origin or not destination:
        logger.warning("Origin or destination is missing.")
        return None

    try:
        response = requests.get(
            DISTANCE_MATRIX_URL,
            params={
                "origins": origin,
                "destinations": destination,
                "key": settings.GOOGLE_MAPS_API_KEY,
                "units": "metric",
            },
            timeout=10,
        )
        response.raise_for_status()
        result = response.json()
    except requests.exceptions.RequestException as e:
        logger.error(f"Google Maps request failed for {origin} → {destination}: {e}")
        return None

    if result.get('status') != 'OK' or not result.get('rows') or not result['rows'][0].get('elements'):
        logger.warning(f"Google Maps API issue for {origin} → {destination}: Status {result.get('status')}, "
                       f"Error: {result.get('error_message', 'No elements')}")
        return None

    element = result['rows'][0]['elements'][0]
    if element.get('status') != 'OK':
        logger.warning(f"Google Maps element status not OK for {origin} → {destination}: {element.get('status')}")
        return None
    return round(element['distance']['value'] / 1000, 1)
