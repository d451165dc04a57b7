"""
api/endpoints/lead_routes.py — Read-only lead routes for the project owner.

GET /leads            — List the project's leads (filterable by qualified / spam)
GET /leads/{lead_id}  — Get a single lead, including webhook delivery bookkeeping
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from leadvalidator.config import ProjectConfig
from leadvalidator.db.repository import get_lead, get_leads_for_project
from leadvalidator.db.session import get_db
from api.deps import get_project
from api.schemas import LeadOut

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[LeadOut], summary="List leads")
def list_leads(
    qualified: Optional[bool] = Query(default=None, description="Only qualified / unqualified leads"),
    spam: Optional[bool] = Query(default=None, description="Only spam / non-spam leads"),
    limit: int = Query(default=50, ge=1, le=200),
    project: ProjectConfig = Depends(get_project),
    db: Session = Depends(get_db),
):
    """Return the calling project's leads, newest first."""
    return get_leads_for_project(
        db, project.project_id, qualified=qualified, spam=spam, limit=limit,
    )


@router.get("/{lead_id}", response_model=LeadOut, summary="Get lead by ID")
def get_lead_detail(
    lead_id: str,
    project: ProjectConfig = Depends(get_project),
    db: Session = Depends(get_db),
):
    """Fetch a single lead belonging to the calling project."""
    lead = get_lead(db, lead_id)
    if not lead or lead.project_id != project.project_id:
        raise HTTPException(status_code=404, detail=f"Lead {lead_id} not found.")
    return lead
