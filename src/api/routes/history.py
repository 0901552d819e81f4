"""Check history endpoints."""

from fastapi import APIRouter, Depends, Query

from src.api.deps import get_history_store, require_bearer
from src.db.history import HistoryStore
from src.errors import ApiError
from src.schemas.history import CheckHistoryPage
from src.utils.logging import log, get_logger

MODULE = "history_api"
logger = get_logger()

router = APIRouter(dependencies=[Depends(require_bearer)])


@router.get("")
async def list_history(
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    store: HistoryStore = Depends(get_history_store),
):
    """List check records, newest first."""
    records = await store.get_check_history(limit=limit, offset=offset)
    page = CheckHistoryPage(records=records, limit=limit, offset=offset)
    return page.model_dump(by_alias=True, mode="json")


@router.get("/stats")
async def history_stats(store: HistoryStore = Depends(get_history_store)):
    stats = await store.get_statistics()
    return stats.model_dump(by_alias=True)


@router.get("/{record_id}")
async def get_record(record_id: str, store: HistoryStore = Depends(get_history_store)):
    record = await store.get_check_by_id(record_id)
    if record is None:
        log.info(logger, MODULE, "not_found", "Check record not found", record_id=record_id)
        raise ApiError("Check record not found", code="NOT_FOUND", status_code=404)
    return record.model_dump(by_alias=True, mode="json")


@router.delete("/{record_id}")
async def delete_record(record_id: str, store: HistoryStore = Depends(get_history_store)):
    if not await store.delete_check(record_id):
        raise ApiError("Check record not found", code="NOT_FOUND", status_code=404)
    return {"deleted": True, "id": record_id}
