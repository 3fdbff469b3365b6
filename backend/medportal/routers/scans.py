from fastapi import APIRouter, Depends, Query

from medportal.auth import Session
from medportal.authorization import require_roles
from medportal.config import get_settings
from medportal.roles import Role
from medportal.schemas.scan import AnalysisResponse, ScanCreate, ScanResponse
from medportal.services.scan_analysis_service import ScanAnalysisService
from medportal.services.scan_service import ScanService
from medportal.store import RecordStore, get_store

router = APIRouter()

radiologist_only = require_roles(Role.RADIOLOGIST)


@router.get("")
async def list_scans(
    limit: int = Query(50, ge=1, le=200),
    session: Session = Depends(radiologist_only),
    store: RecordStore = Depends(get_store),
):
    rows = await ScanService(store).list_scans(session, limit=limit)
    return {"scans": [ScanResponse(**row) for row in rows], "total": len(rows)}


@router.post("", status_code=201)
async def upload_scan(
    body: ScanCreate,
    session: Session = Depends(radiologist_only),
    store: RecordStore = Depends(get_store),
):
    service = ScanService(store)
    scan = await service.create_scan(session, body)
    return {
        "success": True,
        "scan": ScanResponse(**scan),
        "notifications": [n.to_dict() for n in service.notifier.drain()],
    }


@router.post("/{scan_id}/analyze", response_model=AnalysisResponse)
async def analyze_scan(
    scan_id: str,
    force: bool = Query(False, description="Re-run even if the scan was already analyzed"),
    session: Session = Depends(radiologist_only),
    store: RecordStore = Depends(get_store),
):
    """Send the scan image to the vision oracle and store the structured result."""
    service = ScanAnalysisService(store, settings=get_settings())
    outcome = await service.analyze(scan_id, force=force, session=session)
    return AnalysisResponse(
        success=True,
        reused=outcome.reused,
        result=outcome.result,
        analysis=dict(outcome.analysis, full_text=outcome.full_text) if outcome.full_text else outcome.analysis,
    )
