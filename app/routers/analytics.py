# app/routers/analytics.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import get_current_user, require_admin
from app.db.models import User, UserRole
from app.db.session import get_async_session
from app.services import analytics as analytics_service
from app.services.excel_export import build_analytics_excel

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("")
async def get_analytics(
    period: Optional[str] = Query("month"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    start, end = analytics_service.resolve_range(period, start_date, end_date)
    data = await analytics_service.overview(session, current_user, start, end)
    data["period"] = {"start": start, "end": end}
    return data


@router.get("/export/excel")
async def export_analytics_excel(
    period: Optional[str] = Query("month"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    start, end = analytics_service.resolve_range(period, start_date, end_date)
    data = await analytics_service.overview(session, current_user, start, end)

    buffer = build_analytics_excel(data, start.date(), end.date())
    filename = f"analytics_{date.today().isoformat()}.xlsx"
    return StreamingResponse(
        buffer,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/agents")
async def get_agents_performance(
    period: Optional[str] = Query("month"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    start, end = analytics_service.resolve_range(period, start_date, end_date)
    return await analytics_service.agents_performance(session, start, end)


@router.get("/agent/{agent_id}")
async def get_agent_detail(
    agent_id: int,
    period: Optional[str] = Query("month"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    # admin ou le télépro lui-même
    if not current_user.is_admin and current_user.id != agent_id:
        raise HTTPException(status_code=403, detail="Accès interdit")

    agent = await session.get(User, agent_id)
    if not agent or agent.role != UserRole.telepro:
        raise HTTPException(status_code=404, detail="Agent non trouvé")

    start, end = analytics_service.resolve_range(period, start_date, end_date)
    return await analytics_service.agent_detail(session, agent, start, end)
