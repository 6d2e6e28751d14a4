# tms_api/routers/pdf.py
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from tms_api.models import HtmlPdfRequest
from tms_api.services import documents

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/generate", summary="Render HTML with its CSS to a landscape A4 PDF")
def generate_pdf(request: HtmlPdfRequest):
    if not request.htmlContent or not request.cssContent:
        raise HTTPException(status_code=400, detail="Missing HTML or CSS content")

    try:
        content = documents.render_html_pdf(request.htmlContent, request.cssContent)
    except documents.DocumentRenderError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="document.pdf"'},
    )
