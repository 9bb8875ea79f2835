from contextlib import contextmanager
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response
from psycopg import Error as DatabaseError

from bookkeeping.core.config import settings
from bookkeeping.core.logging import get_logger
from bookkeeping.db.database import db_conn
from bookkeeping.models.schemas import (
    EXPENSE_SUBCATEGORIES,
    INCOME_SUBCATEGORIES,
    LoginRequest,
    PeriodMode,
    SenderCreateRequest,
    TransactionCreateRequest,
    TransactionItem,
)
from bookkeeping.services.auth import (
    ADMIN,
    TRIAL,
    check_login,
    clear_login_attempts,
    enforce_login_rate_limit,
    require_session,
)
from bookkeeping.services.export import export_filename, period_label, transactions_to_csv, transactions_to_pdf
from bookkeeping.services.ledger import (
    delete_saved_sender,
    delete_transaction,
    insert_transaction,
    list_entities,
    list_saved_senders,
    list_transactions,
    save_sender,
)
from bookkeeping.services.periods import DateRange, parse_local_date, resolve_period
from bookkeeping.services.reports import ReportFilter, aggregate, build_report, filter_transactions
from bookkeeping.services.state import report_cache
from bookkeeping.services.table import (
    SORT_KEYS,
    TEXT_COLUMNS,
    TEXT_OPERATORS,
    ColumnFilters,
    SortState,
    TextFilter,
    apply_column_filters,
    sort_and_page,
    toggle_sort,
)

logger = get_logger(__name__)

router = APIRouter()


@contextmanager
def storage(action: str):
    try:
        with db_conn() as conn, conn.cursor() as cur:
            yield conn, cur
    except DatabaseError:
        logger.exception("Storage failure: unable to %s", action)
        raise HTTPException(status_code=500, detail=f"Unable to {action}")


def parse_query_date(value: str | None, field_name: str) -> str:
    if not value:
        return ""
    if parse_local_date(value) is None:
        raise HTTPException(status_code=400, detail=f"Invalid {field_name}, expected YYYY-MM-DD")
    return value


def resolve_reference_date(value: str | None) -> date:
    if not value:
        return date.today()
    parsed = parse_local_date(value)
    if parsed is None:
        raise HTTPException(status_code=400, detail="Invalid reference_date, expected YYYY-MM-DD")
    return parsed


def fetch_all_transactions() -> list[dict]:
    with storage("load transactions") as (_, cur):
        return list_transactions(cur)


@router.get("/health")
def health():
    return {"ok": True}


@router.post("/auth/login")
def login(req: Request, payload: LoginRequest):
    enforce_login_rate_limit(req)
    try:
        check_login(payload.password.strip())
    except HTTPException as exc:
        if exc.status_code == 401:
            logger.warning("Rejected login attempt")
        raise
    clear_login_attempts(req)
    req.session.clear()
    req.session["user_type"] = ADMIN
    logger.info("Admin session started")
    return {"ok": True, "user_type": ADMIN}


@router.post("/auth/trial")
def start_trial(req: Request):
    if not settings.trial_enabled:
        raise HTTPException(status_code=403, detail="Trial mode is disabled")
    req.session.clear()
    req.session["user_type"] = TRIAL
    logger.info("Trial session started")
    return {"ok": True, "user_type": TRIAL}


@router.post("/auth/logout")
def logout(req: Request):
    req.session.clear()
    return {"ok": True}


@router.get("/me")
def me(req: Request):
    user_type = require_session(req)
    return {"user_type": user_type, "tz": settings.tz}


@router.get("/categories")
def categories(req: Request):
    require_session(req)
    return {"Income": INCOME_SUBCATEGORIES, "Expense": EXPENSE_SUBCATEGORIES}


@router.get("/transactions")
def get_transactions(req: Request, from_date: str | None = None, to_date: str | None = None):
    require_session(req)
    from_date = parse_query_date(from_date, "from_date")
    to_date = parse_query_date(to_date, "to_date")
    with storage("load transactions") as (_, cur):
        return list_transactions(cur, from_date or None, to_date or None)


@router.post("/transactions", status_code=201, response_model=TransactionItem)
def create_transaction(req: Request, payload: TransactionCreateRequest):
    require_session(req)
    with storage("save the transaction") as (conn, cur):
        row = insert_transaction(cur, payload.model_dump())
        conn.commit()
    report_cache.clear()
    return row


@router.get("/transactions/table")
def transactions_table(
    req: Request,
    sort_key: str = "date",
    direction: str = "desc",
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=200),
    date_from: str | None = None,
    date_to: str | None = None,
    amount_min: Decimal | None = None,
    amount_max: Decimal | None = None,
    toggle: str | None = None,
):
    """
    Column filters on the full transaction list:
      - <column>=text and <column>_op=contains|equals|starts|ends for
        category, subcategory, sender, receiver, remarks
      - categories=Income&categories=Expense (set filter)
      - date_from/date_to, amount_min/amount_max (inclusive sub-ranges)
    then sort_key/direction and a 1-indexed page. toggle=<column> applies a
    header click to that state: the active column flips direction, any other
    column starts descending on page 1.
    """
    require_session(req)
    if sort_key not in SORT_KEYS:
        raise HTTPException(status_code=400, detail="Invalid sort_key")
    if direction not in ("asc", "desc"):
        raise HTTPException(status_code=400, detail="Invalid direction")
    state = SortState(key=sort_key, direction=direction, page=page)
    if toggle:
        try:
            state = toggle_sort(state, toggle)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid toggle")

    text_filters = {}
    for column in TEXT_COLUMNS:
        value = (req.query_params.get(column) or "").strip()
        if not value:
            continue
        operator = req.query_params.get(f"{column}_op") or "contains"
        if operator not in TEXT_OPERATORS:
            raise HTTPException(status_code=400, detail=f"Invalid {column}_op")
        text_filters[column] = TextFilter(operator, value)

    selected = frozenset(v for v in req.query_params.getlist("categories") if v)
    filters = ColumnFilters(
        text=text_filters,
        sets={"category": selected} if selected else {},
        from_date=parse_query_date(date_from, "date_from"),
        to_date=parse_query_date(date_to, "date_to"),
        min_amount=amount_min,
        max_amount=amount_max,
    )

    rows = apply_column_filters(fetch_all_transactions(), filters)
    result = sort_and_page(rows, state.key, state.direction, state.page, page_size)
    return {**result, "sort_key": state.key, "direction": state.direction}


@router.delete("/transactions/{transaction_id}", status_code=204)
def remove_transaction(transaction_id: int, req: Request):
    require_session(req)
    with storage("delete the transaction") as (conn, cur):
        deleted = delete_transaction(cur, transaction_id)
        if not deleted:
            conn.rollback()
            raise HTTPException(status_code=404, detail="Transaction not found")
        conn.commit()
    report_cache.clear()
    return Response(status_code=204)


@router.get("/entities")
def entities(req: Request, entity_type: str | None = None):
    user_type = require_session(req)
    if entity_type not in (None, "", "sender", "receiver"):
        raise HTTPException(status_code=400, detail="entity_type must be sender or receiver")
    with storage("fetch entities") as (_, cur):
        return list_entities(cur, is_trial=user_type == TRIAL, entity_type=entity_type or None)


@router.get("/saved-senders")
def saved_senders(req: Request):
    require_session(req)
    with storage("load saved senders") as (_, cur):
        return list_saved_senders(cur)


@router.post("/saved-senders")
def add_saved_sender(req: Request, payload: SenderCreateRequest):
    require_session(req)
    with storage("save the sender") as (conn, cur):
        created = save_sender(cur, payload.sender)
        conn.commit()
    if not created:
        return {"message": "Sender already exists.", "sender": payload.sender}
    return JSONResponse(status_code=201, content={"message": "Sender saved successfully.", "sender": payload.sender})


@router.delete("/saved-senders")
def remove_saved_sender(req: Request, sender: str | None = None):
    require_session(req)
    sender = (sender or "").strip()
    if not sender:
        raise HTTPException(status_code=400, detail="Sender parameter is required.")
    with storage("delete the sender") as (conn, cur):
        deleted = delete_saved_sender(cur, sender)
        conn.commit()
    if not deleted:
        raise HTTPException(status_code=404, detail="Sender not found")
    logger.info("Removed saved sender %r", sender)
    return {"message": "Sender deleted successfully."}


@router.get("/reports")
def reports(
    req: Request,
    mode: PeriodMode = "thisMonth",
    from_date: str | None = None,
    to_date: str | None = None,
    receiver: str = "",
    reference_date: str | None = None,
):
    user_type = require_session(req)
    reference = resolve_reference_date(reference_date)
    custom_range = DateRange(parse_query_date(from_date, "from_date"), parse_query_date(to_date, "to_date"))
    receiver = receiver.strip()

    cache_key = report_cache.make_key(
        user_type,
        {
            "mode": mode,
            "from": custom_range.from_date if mode == "custom" else "",
            "to": custom_range.to_date if mode == "custom" else "",
            "receiver": receiver,
            "ref": reference.isoformat(),
        },
    )
    cached = report_cache.get(cache_key)
    if cached:
        return cached

    report = build_report(fetch_all_transactions(), mode, reference, custom_range, receiver)
    report["label"] = period_label(mode, reference, DateRange(**report["range"]))
    report_cache.set(cache_key, report, settings.report_cache_ttl)
    return report


@router.get("/export")
def export_transactions(
    req: Request,
    format: str = "csv",
    mode: PeriodMode = "thisMonth",
    from_date: str | None = None,
    to_date: str | None = None,
    receiver: str = "",
    reference_date: str | None = None,
):
    require_session(req)
    export_format = (format or "csv").lower()
    if export_format not in ("csv", "pdf"):
        raise HTTPException(status_code=400, detail="Invalid export format")

    reference = resolve_reference_date(reference_date)
    custom_range = DateRange(parse_query_date(from_date, "from_date"), parse_query_date(to_date, "to_date"))
    period = resolve_period(mode, reference, custom_range)
    rows = filter_transactions(
        fetch_all_transactions(), ReportFilter(mode=mode, period=period, receiver=receiver.strip())
    )

    filename = export_filename(mode, period, date.today(), export_format)
    if export_format == "csv":
        content = transactions_to_csv(rows)
        media_type = "text/csv"
    else:
        content = transactions_to_pdf(rows, period_label(mode, reference, period), aggregate(rows))
        media_type = "application/pdf"
    logger.info("Exported %s transactions as %s", len(rows), export_format)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
