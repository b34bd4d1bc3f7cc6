"""US location lookups used to pick a query's city_id."""

from fastapi import APIRouter, Query as QueryParam, Request

from jobradar.auth import CurrentUser
from jobradar.dependencies import get_supabase
from jobradar.models.search import City, State
from jobradar.services import supabase_client as db

router = APIRouter(prefix="/locations", tags=["locations"])


@router.get("/states", response_model=list[State])
async def list_states(request: Request, _user: CurrentUser) -> list[State]:
    rows = await db.list_states(get_supabase(request))
    return [State.model_validate(row) for row in rows]


@router.get("/cities", response_model=list[City])
async def list_cities(
    request: Request,
    _user: CurrentUser,
    state_id: int = QueryParam(ge=1),
) -> list[City]:
    rows = await db.list_cities(get_supabase(request), state_id)
    return [City.model_validate(row) for row in rows]
