# app/services/analytics.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import (
    ClientBase,
    ClientProduit,
    Lead,
    User,
    UserRole,
    utcnow,
)


# Étapes à partir desquelles un produit est considéré comme signé
SIGNED_STATUTS = ("devis_signe", "pose_prevue", "pose_terminee", "coffrac", "termine")

PERIODS = ("day", "week", "month", "year")


def _rate(part: int, total: int) -> float:
    return round(part / total * 100, 1) if total else 0.0


def resolve_range(
    period: Optional[str],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Tuple[datetime, datetime]:
    """
    start_date / end_date (inclusifs) priment sur period.
    period inconnu -> month.
    """
    now = utcnow()
    if start_date and end_date:
        return datetime.combine(start_date, time.min), datetime.combine(end_date, time.max)

    if period == "day":
        start = datetime.combine(now.date(), time.min)
    elif period == "week":
        start = now - timedelta(days=7)
    elif period == "year":
        start = now - timedelta(days=365)
    else:
        start = now - timedelta(days=30)
    return start, now


# =========================================================
# Vue d'ensemble
# =========================================================
async def overview(
    db: AsyncSession,
    user: User,
    start: datetime,
    end: datetime,
) -> Dict[str, Any]:
    """
    Compteurs sur la période. Un télépro ne voit que ses propres
    produits / leads ; un admin voit tout, plus la performance des agents.
    """
    produit_scope = [ClientProduit.created_at.between(start, end)]
    lead_scope = [Lead.created_at.between(start, end)]
    if not user.is_admin:
        produit_scope.append(ClientProduit.assigned_to == user.id)
        lead_scope.append(Lead.assigned_to == user.id)

    total_produits = (
        await db.execute(select(func.count(ClientProduit.id)).where(*produit_scope))
    ).scalar_one()
    total_clients = (
        await db.execute(
            select(func.count(func.distinct(ClientProduit.client_base_id))).where(*produit_scope)
        )
    ).scalar_one()
    total_leads = (await db.execute(select(func.count(Lead.id)).where(*lead_scope))).scalar_one()

    converted = (
        await db.execute(
            select(func.count(func.distinct(ClientBase.id)))
            .join(ClientProduit, ClientProduit.client_base_id == ClientBase.id)
            .where(ClientBase.converted_from_lead_id.is_not(None), *produit_scope)
        )
    ).scalar_one()

    by_statut = (
        await db.execute(
            select(ClientProduit.statut, func.count())
            .where(*produit_scope)
            .group_by(ClientProduit.statut)
        )
    ).all()
    by_type = (
        await db.execute(
            select(ClientProduit.type_produit, func.count())
            .where(*produit_scope)
            .group_by(ClientProduit.type_produit)
        )
    ).all()
    leads_status = (
        await db.execute(select(Lead.status, func.count()).where(*lead_scope).group_by(Lead.status))
    ).all()

    signed = sum(n for statut, n in by_statut if statut in SIGNED_STATUTS)

    day = func.date(ClientProduit.created_at)
    over_time = (
        await db.execute(
            select(day.label("date"), func.count().label("count"))
            .where(*produit_scope)
            .group_by(day)
            .order_by(day.asc())
        )
    ).all()

    recent_q = (
        select(ClientProduit, ClientBase.societe)
        .join(ClientBase, ClientBase.id == ClientProduit.client_base_id)
        .order_by(ClientProduit.created_at.desc())
        .limit(10)
    )
    if not user.is_admin:
        recent_q = recent_q.where(ClientProduit.assigned_to == user.id)
    recent = [
        {
            "id": p.client_base_id,
            "produit_id": p.id,
            "societe": societe,
            "type_produit": p.type_produit.value,
            "statut": p.statut,
            "created_at": p.created_at,
        }
        for p, societe in (await db.execute(recent_q)).all()
    ]

    data: Dict[str, Any] = {
        "summary": {
            "totalClients": total_clients,
            "totalProduits": total_produits,
            "totalLeads": total_leads,
            "convertedLeads": converted,
            "signedProduits": signed,
            "conversionRate": _rate(converted, total_leads + converted),
            "signatureRate": _rate(signed, total_produits),
        },
        "charts": {
            "clientsOverTime": [{"date": str(d), "count": n} for d, n in over_time],
            "produitsByStatut": [{"statut": s, "count": n} for s, n in by_statut],
            "produitsByType": [{"type_produit": t.value, "count": n} for t, n in by_type],
            "leadsStatus": [{"status": s.value, "count": n} for s, n in leads_status],
        },
        "recentClients": recent,
    }

    if user.is_admin:
        data["charts"]["agentPerformance"] = await agents_performance(db, start, end)
    return data


# =========================================================
# Performance des télépros
# =========================================================
async def _agent_metrics(db: AsyncSession, agent: User, start: datetime, end: datetime) -> Dict[str, Any]:
    scope = and_(
        ClientProduit.assigned_to == agent.id,
        ClientProduit.created_at.between(start, end),
    )
    total, signed, last_activity = (
        await db.execute(
            select(
                func.count(ClientProduit.id),
                func.count(ClientProduit.id).filter(ClientProduit.statut.in_(SIGNED_STATUTS)),
                func.max(ClientProduit.updated_at),
            ).where(scope)
        )
    ).one()

    leads_count = (
        await db.execute(select(func.count(Lead.id)).where(Lead.assigned_to == agent.id))
    ).scalar_one()
    converted = (
        await db.execute(
            select(func.count(func.distinct(ClientBase.id)))
            .join(ClientProduit, ClientProduit.client_base_id == ClientBase.id)
            .where(ClientBase.converted_from_lead_id.is_not(None), scope)
        )
    ).scalar_one()

    return {
        "id": agent.id,
        "username": agent.username,
        "total_produits": total,
        "signed": signed,
        "signature_rate": _rate(signed, total),
        "leads": leads_count,
        "converted_leads": converted,
        "conversion_rate": _rate(converted, leads_count + converted),
        "last_activity": last_activity,
    }


async def agents_performance(db: AsyncSession, start: datetime, end: datetime) -> List[Dict[str, Any]]:
    agents = (
        await db.execute(select(User).where(User.role == UserRole.telepro).order_by(User.username))
    ).scalars().all()
    metrics = [await _agent_metrics(db, a, start, end) for a in agents]
    metrics.sort(key=lambda m: m["total_produits"], reverse=True)
    return metrics


async def agent_detail(db: AsyncSession, agent: User, start: datetime, end: datetime) -> Dict[str, Any]:
    data = await _agent_metrics(db, agent, start, end)

    day = func.date(ClientProduit.created_at)
    trend = (
        await db.execute(
            select(day, func.count())
            .where(ClientProduit.assigned_to == agent.id, ClientProduit.created_at.between(start, end))
            .group_by(day)
            .order_by(day.asc())
        )
    ).all()
    by_statut = (
        await db.execute(
            select(ClientProduit.statut, func.count())
            .where(ClientProduit.assigned_to == agent.id)
            .group_by(ClientProduit.statut)
        )
    ).all()

    data["trend"] = [{"date": str(d), "count": n} for d, n in trend]
    data["produitsByStatut"] = [{"statut": s, "count": n} for s, n in by_statut]
    return data
