"""FastAPI 应用，供外部触发层调用选择引擎。"""

from __future__ import annotations

import datetime as dt
from typing import Optional

from fastapi import FastAPI, Query
from pydantic import BaseModel

from screengate.core.activities import ActivityCatalog
from screengate.core.preferences import validate_preferences
from screengate.core.selection_engine import SelectionEngine
from screengate.core.usage_history import UsageHistory
from screengate.service import GateService


class TriggerRequest(BaseModel):
    context_id: str
    timestamp: Optional[dt.datetime] = None


class OutcomeRequest(BaseModel):
    activity_id: str
    context_id: str
    timestamp: Optional[dt.datetime] = None


def create_app(service: Optional[GateService] = None) -> FastAPI:
    """构建 FastAPI 应用并注册路由。"""

    app = FastAPI(title="screengate")
    if service is None:
        service = GateService(SelectionEngine(ActivityCatalog(), UsageHistory()))
    _service = service

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/activities", tags=["activities"])
    async def activities() -> list[dict]:
        return [a.model_dump(mode="json") for a in _service.engine.catalog.all()]

    @app.get("/schedules/active", tags=["schedules"])
    async def schedules_active() -> dict:
        now = dt.datetime.now()
        active = _service.active_schedules(now)
        transition = _service.next_transition(now)
        return {
            "active": [s.model_dump(mode="json") for s in active],
            "next_transition": transition.isoformat() if transition else None,
        }

    @app.post("/select", tags=["selection"])
    async def select(request: TriggerRequest) -> dict:
        activity = _service.handle_trigger(request.context_id, request.timestamp)
        return {
            "restricted": activity is not None,
            "activity": activity.model_dump(mode="json") if activity else None,
        }

    @app.get("/recommend", tags=["selection"])
    async def recommend(context_id: str, count: int = Query(3, ge=1, le=50)) -> list[dict]:
        activities = _service.engine.recommend(context_id, _service.get_preferences(), count=count)
        return [a.model_dump(mode="json") for a in activities]

    @app.post("/completions", tags=["selection"])
    async def completions(request: OutcomeRequest) -> dict[str, bool]:
        return {"recorded": _service.complete(request.activity_id, request.context_id, request.timestamp)}

    @app.post("/skips", tags=["selection"])
    async def skips(request: OutcomeRequest) -> dict[str, bool]:
        return {"recorded": _service.skip(request.activity_id, request.context_id, request.timestamp)}

    @app.get("/preferences/validation", tags=["preferences"])
    async def preference_validation() -> list[dict[str, str]]:
        errors = validate_preferences(_service.get_preferences())
        return [{"kind": e.kind.value, "message": e.message} for e in errors]

    return app
