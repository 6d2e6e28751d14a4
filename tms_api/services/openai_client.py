# tms_api/services/openai_client.py
import openai
import json
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from tms_api.config import settings

logger = logging.getLogger(__name__)

# Initialize OpenAI client if API key is available
if settings.OPENAI_API_KEY:
    client = openai.OpenAI(api_key=settings.OPENAI_API_KEY)
else:
    client = None
    logger.warning("OpenAI API key is not configured. AI helpers are disabled.")


class AIServiceError(Exception):
    pass


class AINotConfiguredError(AIServiceError):
    pass


# --- Output schemas ---

class OptimizeRouteOutput(BaseModel):
    optimizedRoute: str = Field(..., description="The optimized route as a list of addresses.")
    estimatedTimeSavings: str = Field(..., description="Human-readable estimated time savings.")
    reasoning: str = Field(..., description="Step-by-step reasoning for the optimized route.")

class ChecklistOutput(BaseModel):
    checklistItems: List[str]

class DriverLicenseOutput(BaseModel):
    displayName: Optional[str] = None
    registerNumber: Optional[str] = None
    birthDate: Optional[str] = None
    licenseNumber: Optional[str] = None
    licenseClasses: Optional[List[str]] = None
    licenseExpiryDate: Optional[str] = None
    confidence: Optional[float] = None
    rawText: Optional[str] = None

class NationalIdOutput(BaseModel):
    lastName: Optional[str] = None
    firstName: Optional[str] = None
    registerNumber: Optional[str] = None
    birthDate: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    confidence: Optional[float] = None
    rawText: Optional[str] = None


OutputT = TypeVar("OutputT", bound=BaseModel)


def _generate(messages: List[Dict[str, Any]], schema: Type[OutputT], model: Optional[str] = None) -> OutputT:
    """Runs one JSON-mode completion and validates it against the output schema."""
    if client is None:
        raise AINotConfiguredError("OpenAI API key not set.")

    try:
        response = client.chat.completions.create(
            model=model or settings.OPENAI_MODEL,
            messages=messages,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content
    except Exception as e:
        logger.error(f"OpenAI request for {schema.__name__} failed: {e}", exc_info=True)
        raise AIServiceError(f"AI request failed: {e}") from e

    try:
        return schema.model_validate_json(content or "{}")
    except ValidationError as e:
        logger.error(f"OpenAI returned output not matching {schema.__name__}: {content}")
        raise AIServiceError(f"AI returned malformed output: {e}") from e


def optimize_route(current_route: str, delivery_deadlines: str, traffic_conditions: str) -> OptimizeRouteOutput:
    """Asks the model to reorder a delivery route around deadlines and traffic."""
    prompt = (
        "You will receive the current route, delivery deadlines, and current traffic conditions.\n"
        "Use this information to determine the optimal route, estimate the time savings, "
        "and provide a step-by-step reasoning for your determination.\n\n"
        f"Current Route: {current_route}\n"
        f"Delivery Deadlines: {delivery_deadlines}\n"
        f"Traffic Conditions: {traffic_conditions}\n\n"
        "Follow these steps:\n"
        "1. Analyze the current route and identify potential bottlenecks.\n"
        "2. Evaluate the traffic conditions and identify alternative routes.\n"
        "3. Consider the delivery deadlines and prioritize deliveries accordingly.\n"
        "4. Provide a step-by-step reasoning for the optimized route.\n"
        "5. Estimate the time savings from the optimized route.\n\n"
        "Respond with a JSON object:\n"
        '{"optimizedRoute": "[address1, address2, ...]", '
        '"estimatedTimeSavings": "X hours and Y minutes", '
        '"reasoning": "Step 1: ... Step 2: ..."}'
    )
    return _generate(
        [
            {"role": "system", "content": "You are an expert route optimization specialist."},
            {"role": "user", "content": prompt},
        ],
        OptimizeRouteOutput,
    )


def _checklist(stage: str, cargo_info: str, vehicle_info: str) -> ChecklistOutput:
    prompt = (
        f"Generate a concise and critical checklist for a driver preparing to {stage} cargo.\n"
        "Base it on the specific cargo and vehicle information provided. "
        "Focus on safety, proper procedures, and securing the cargo. "
        "Keep the items short and clear. Generate between 4 and 6 critical items.\n\n"
        f"Cargo Information: {cargo_info}\n"
        f"Vehicle Information: {vehicle_info}\n\n"
        'Respond with a JSON object with a key "checklistItems" containing an array of strings in Mongolian.'
    )
    result = _generate(
        [
            {"role": "system", "content": "You are a logistics and transportation safety expert. Your responses must be in Mongolian."},
            {"role": "user", "content": prompt},
        ],
        ChecklistOutput,
    )
    if not result.checklistItems:
        raise AIServiceError("AI returned an empty checklist.")
    return result


def generate_loading_checklist(cargo_info: str, vehicle_info: str) -> ChecklistOutput:
    return _checklist("load", cargo_info, vehicle_info)


def generate_unloading_checklist(cargo_info: str, vehicle_info: str) -> ChecklistOutput:
    return _checklist("unload", cargo_info, vehicle_info)


def to_data_url(image_base64: str) -> str:
    if image_base64.startswith("data:"):
        return image_base64
    return f"data:image/jpeg;base64,{image_base64}"


def _image_messages(instructions: str, front: Optional[str], back: Optional[str]) -> List[Dict[str, Any]]:
    if not front and not back:
        raise ValueError("At least one image is required")

    parts: List[Dict[str, Any]] = []
    for image in (front, back):
        if image:
            parts.append({"type": "image_url", "image_url": {"url": to_data_url(image)}})
    parts.append({"type": "text", "text": instructions})
    return [{"role": "user", "content": parts}]


def analyze_driver_license(front_image: Optional[str], back_image: Optional[str]) -> DriverLicenseOutput:
    """Extracts driver details from the front/back photos of a Mongolian driver's license."""
    fields = {
        "displayName": "Full name (Овог Нэр), usually in Cyrillic Mongolian",
        "registerNumber": 'National registration number (Регистрийн дугаар), format like "УК12345678"',
        "birthDate": "Date of birth in YYYY-MM-DD format",
        "licenseNumber": "The driver's license number",
        "licenseClasses": 'Array of license categories, e.g. ["B", "C"] not "BC"',
        "licenseExpiryDate": "Expiry date in YYYY-MM-DD format",
        "confidence": "Your confidence in the extraction (0-100)",
        "rawText": "All text you can read from the image(s)",
    }
    instructions = (
        "You are an OCR system specialized in reading Mongolian driver's licenses (Жолооны үнэмлэх).\n"
        "The front side usually has photo, name, birth date and license number; "
        "the back side has categories and expiry dates. "
        "If a field is not clearly readable, set it to null.\n"
        f"Return a JSON object with these fields: {json.dumps(fields, ensure_ascii=False)}"
    )
    return _generate(_image_messages(instructions, front_image, back_image), DriverLicenseOutput,
                     model=settings.OPENAI_VISION_MODEL)


def analyze_national_id(front_image: Optional[str], back_image: Optional[str]) -> NationalIdOutput:
    """Extracts citizen details from a Mongolian national ID card."""
    fields = {
        "lastName": "Family/father's name (Эцэг/эхийн нэр)",
        "firstName": "Given name (Нэр)",
        "registerNumber": "Registration number, two Cyrillic letters followed by 8 digits",
        "birthDate": "Date of birth in YYYY-MM-DD format",
        "gender": "Gender as printed",
        "address": "Registered address, usually on the back side",
        "confidence": "Your confidence in the extraction (0-100)",
        "rawText": "All text you can read from the image(s)",
    }
    instructions = (
        "You are an OCR system specialized in reading Mongolian national ID cards (Иргэний үнэмлэх).\n"
        "If a field is not clearly readable, set it to null.\n"
        f"Return a JSON object with these fields: {json.dumps(fields, ensure_ascii=False)}"
    )
    return _generate(_image_messages(instructions, front_image, back_image), NationalIdOutput,
                     model=settings.OPENAI_VISION_MODEL)
