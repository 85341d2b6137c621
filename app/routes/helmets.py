"""Read API over the helmet catalog and current prices."""

from collections import OrderedDict
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from app.api.ebay_sold import build_sold_url
from app.database import get_db
from app.models import Helmet, HelmetPrice
from app.services.cleanup import CLEANUP_JOBS
from app.services.prices import get_price_stats, summarize_prices
from app.tasks.celery_app import celery_app
from app.tasks.cleanup import run_cleanup
from app.tasks.import_sources import import_fanatics_helmets, import_radtke_helmets, import_rsa_helmets

router = APIRouter()

MIN_QUERY_LENGTH = 2
MAX_SUGGESTIONS = 10
SUGGESTION_CANDIDATES = 200

IMPORT_TASKS = {
    "rsa": import_rsa_helmets,
    "radtke": import_radtke_helmets,
    "fanatics": import_fanatics_helmets,
}


def _float(value) -> Optional[float]:
    return float(value) if value is not None else None


def _price_json(price: HelmetPrice) -> dict:
    return {
        "id": price.id,
        "source": price.source,
        "median_price": _float(price.median_price),
        "min_price": _float(price.min_price),
        "max_price": _float(price.max_price),
        "total_results": price.total_results,
        "ebay_url": price.ebay_url,
        "scraped_at": price.scraped_at.isoformat() if price.scraped_at else None,
    }


def _helmet_json(helmet: Helmet) -> dict:
    return {
        "id": helmet.id,
        "name": helmet.name,
        "player": helmet.player,
        "team": helmet.team,
        "helmet_type": helmet.helmet_type,
        "design_type": helmet.design_type,
        "auth_company": helmet.auth_company,
    }


def _median(prices: list[HelmetPrice]) -> Optional[float]:
    summary = summarize_prices(p.median_price for p in prices)
    return float(summary.median) if summary else None


@router.get("/api/helmets/suggestions")
async def helmet_suggestions(q: str = "", db: Session = Depends(get_db)):
    """Autocomplete: helmet variants whose player or name matches ``q``."""
    q = q.strip()
    if len(q) < MIN_QUERY_LENGTH:
        raise HTTPException(status_code=400, detail=f"Query must be at least {MIN_QUERY_LENGTH} characters")

    pattern = f"%{q}%"
    helmets = (
        db.query(Helmet)
        .options(selectinload(Helmet.prices))
        .filter(Helmet.is_active == True)
        .filter(or_(Helmet.player.ilike(pattern), Helmet.name.ilike(pattern)))
        .order_by(Helmet.player, Helmet.id)
        .limit(SUGGESTION_CANDIDATES)
        .all()
    )

    groups: "OrderedDict[str, list[Helmet]]" = OrderedDict()
    for helmet in helmets:
        key = "|".join(
            (v or "").lower()
            for v in (helmet.player, helmet.team, helmet.helmet_type, helmet.design_type)
        )
        groups.setdefault(key, []).append(helmet)

    suggestions = []
    for members in groups.values():
        first = members[0]
        prices = [p for h in members for p in h.prices]
        suggestions.append({
            "player": first.player,
            "team": first.team,
            "helmet_type": first.helmet_type,
            "design_type": first.design_type,
            "helmet_ids": [h.id for h in members],
            "median_price": _median(prices),
            "price_count": len(prices),
            "sources": sorted({p.source for p in prices}),
        })

    suggestions.sort(key=lambda s: ((s["player"] or "").lower(), s["team"] or "", s["helmet_type"]))
    return {"query": q, "suggestions": suggestions[:MAX_SUGGESTIONS]}


@router.get("/api/helmets/{helmet_id}/prices")
async def helmet_prices(helmet_id: int, db: Session = Depends(get_db)):
    helmet = db.get(Helmet, helmet_id)
    if helmet is None:
        raise HTTPException(status_code=404, detail="Helmet not found")
    prices = sorted(helmet.prices, key=lambda p: p.source)
    return {
        "helmet": _helmet_json(helmet),
        "median_price": _median(prices),
        "prices": [_price_json(p) for p in prices],
    }


class GroupedPricesRequest(BaseModel):
    ids: list[int] = Field(default_factory=list)


@router.post("/api/helmets/grouped-prices")
async def grouped_prices(payload: GroupedPricesRequest, db: Session = Depends(get_db)):
    """Prices across several catalog rows shown as one suggestion."""
    if not payload.ids:
        raise HTTPException(status_code=400, detail="ids must not be empty")

    prices = (
        db.query(HelmetPrice)
        .filter(HelmetPrice.helmet_id.in_(payload.ids))
        .order_by(HelmetPrice.source, HelmetPrice.helmet_id)
        .all()
    )
    return {
        "ids": payload.ids,
        "median_price": _median(prices),
        "price_count": len(prices),
        "prices": [{"helmet_id": p.helmet_id, **_price_json(p)} for p in prices],
    }


class PriceLookupRequest(BaseModel):
    query: str = Field(min_length=1)
    category: Optional[str] = None
    condition: Optional[str] = None


@router.post("/api/prices")
async def price_lookup(payload: PriceLookupRequest, db: Session = Depends(get_db)):
    """Average current price for a free-text watchlist query."""
    words = [w for w in payload.query.lower().split() if w]
    query = db.query(Helmet).options(selectinload(Helmet.prices)).filter(Helmet.is_active == True)
    for word in words:
        query = query.filter(or_(Helmet.ebay_search_query.ilike(f"%{word}%"), Helmet.name.ilike(f"%{word}%")))
    helmets = query.order_by(Helmet.id).all()

    medians = [float(p.median_price) for h in helmets for p in h.prices if p.median_price is not None]
    average = round(sum(medians) / len(medians), 2) if medians else None
    return {
        "query": payload.query,
        "averagePrice": average,
        "count": len(medians),
        "helmets": len(helmets),
        "ebayUrl": build_sold_url(payload.query),
    }


@router.get("/api/stats")
async def price_stats(db: Session = Depends(get_db)):
    return get_price_stats(db)


class RunImportRequest(BaseModel):
    use_cache: bool = False


@router.post("/api/run-import/{source}")
async def run_import_now(source: str, payload: RunImportRequest | None = None):
    """Queue a marketplace import on the Celery worker."""
    task = IMPORT_TASKS.get(source)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Unknown source: {source}")
    result = task.apply_async(kwargs={"use_cache": payload.use_cache if payload else False})
    return {"status": "queued", "queued_at": datetime.utcnow().isoformat(), "source": source, "task_id": result.id}


@router.post("/api/run-cleanup")
async def run_cleanup_now(job: Optional[str] = None):
    if job is not None and job not in CLEANUP_JOBS:
        raise HTTPException(status_code=400, detail=f"Unknown cleanup job: {job}")
    result = run_cleanup.apply_async(kwargs={"job": job})
    return {"status": "queued", "queued_at": datetime.utcnow().isoformat(), "job": job or "all", "task_id": result.id}


@router.get("/api/task-status/{task_id}")
async def task_status(task_id: str):
    """Poll a celery task state."""
    res = celery_app.AsyncResult(task_id)
    payload = {"task_id": task_id, "state": res.state, "ready": res.ready()}
    if res.ready():
        result = res.result
        payload["result"] = result if isinstance(result, (dict, list, str, int, float, type(None))) else str(result)
    return payload
