"""
Import report API routes.

Render a report the client already holds; nothing is stored.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, Response
import structlog

from exceptions import AppError
from models.report import ImportReport
from services.report_service import get_report_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/reports", tags=["Reports"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.post("/export")
async def export_report(
    report: ImportReport,
    format: str = Query("csv", description="csv, json, txt or xlsx"),
):
    """
    Download an import report.

    Returns the rendered file as an attachment named
    import-report-<date>.<ext>.
    """
    try:
        export = get_report_service().export(report, format)
        return Response(
            content=export.content,
            media_type=export.media_type,
            headers={"Content-Disposition": f'attachment; filename="{export.file_name}"'},
        )
    except Exception as e:
        return handle_error(e)
