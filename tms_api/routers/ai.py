# tms_api/routers/ai.py
import logging

from fastapi import APIRouter, HTTPException

from tms_api.models import ChecklistRequest, DocumentImages, OptimizeRouteRequest
from tms_api.routers.deps import ai_http_error
from tms_api.services import openai_client

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/optimize-route", summary="Suggest a better delivery route")
def optimize_route(request: OptimizeRouteRequest):
    try:
        return openai_client.optimize_route(request.currentRoute, request.deliveryDeadlines,
                                            request.trafficConditions)
    except openai_client.AIServiceError as e:
        raise ai_http_error(e)


@router.post("/loading-checklist")
def loading_checklist(request: ChecklistRequest):
    try:
        return openai_client.generate_loading_checklist(request.cargoInfo, request.vehicleInfo)
    except openai_client.AIServiceError as e:
        raise ai_http_error(e)


@router.post("/unloading-checklist")
def unloading_checklist(request: ChecklistRequest):
    try:
        return openai_client.generate_unloading_checklist(request.cargoInfo, request.vehicleInfo)
    except openai_client.AIServiceError as e:
        raise ai_http_error(e)


@router.post("/analyze-driver-license", summary="Read driver details from license photos")
def analyze_driver_license(images: DocumentImages):
    if not images.frontImageBase64 and not images.backImageBase64:
        raise HTTPException(status_code=400, detail="At least one image is required")
    try:
        return openai_client.analyze_driver_license(images.frontImageBase64, images.backImageBase64)
    except openai_client.AIServiceError as e:
        raise ai_http_error(e)


@router.post("/analyze-national-id", summary="Read citizen details from national ID photos")
def analyze_national_id(images: DocumentImages):
    if not images.frontImageBase64 and not images.backImageBase64:
        raise HTTPException(status_code=400, detail="At least one image is required")
    try:
        return openai_client.analyze_national_id(images.frontImageBase64, images.backImageBase64)
    except openai_client.AIServiceError as e:
        raise ai_http_error(e)
