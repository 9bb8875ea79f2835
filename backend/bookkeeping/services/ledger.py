from datetime import date, datetime
from typing import Any

from bookkeeping.core.logging import get_logger

logger = get_logger(__name__)

TRANSACTION_COLUMNS = "id, date, category, subcategory, sender, receiver, remarks, amount, created_at"


def to_iso(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def serialize_transaction(row: dict[str, Any]) -> dict[str, Any]:
    """Storage row with ``date`` as ``YYYY-MM-DD`` and ``created_at`` as ISO text."""
    return {**row, "date": to_iso(row.get("date")), "created_at": to_iso(row.get("created_at"))}


def list_transactions(cur, from_date: str | None = None, to_date: str | None = None) -> list[dict[str, Any]]:
    filters = []
    params: list[Any] = []
    if from_date:
        filters.append("date >= %s")
        params.append(from_date)
    if to_date:
        filters.append("date <= %s")
        params.append(to_date)
    where_clause = f"WHERE {' AND '.join(filters)}" if filters else ""

    cur.execute(
        f"""
        SELECT {TRANSACTION_COLUMNS}
        FROM transactions
        {where_clause}
        ORDER BY date DESC, created_at DESC
        """,
        params,
    )
    return [serialize_transaction(row) for row in cur.fetchall()]


def insert_transaction(cur, payload: dict[str, Any]) -> dict[str, Any]:
    cur.execute(
        f"""
        INSERT INTO transactions (date, category, subcategory, sender, receiver, remarks, amount)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        RETURNING {TRANSACTION_COLUMNS}
        """,
        (
            payload["date"],
            payload["category"],
            payload["subcategory"],
            payload["sender"],
            payload["receiver"],
            payload.get("remarks") or "",
            payload["amount"],
        ),
    )
    row = serialize_transaction(cur.fetchone())
    logger.info("Created transaction %s (%s)", row["id"], row["category"])
    return row


def delete_transaction(cur, transaction_id: int) -> bool:
    cur.execute("DELETE FROM transactions WHERE id=%s RETURNING id", (transaction_id,))
    deleted = cur.fetchone() is not None
    if deleted:
        logger.info("Deleted transaction %s", transaction_id)
    return deleted


def list_entities(cur, is_trial: bool, entity_type: str | None = None) -> list[dict[str, Any]]:
    query = """
        SELECT id, entity_name, entity_type, created_at
        FROM entities
        WHERE IsDeleted = 'N' AND IsTrial = %s
    """
    params: list[Any] = ["Y" if is_trial else "N"]
    if entity_type in ("sender", "receiver"):
        query += " AND (entity_type = 'both' OR entity_type = %s)"
        params.append(entity_type)
    query += " ORDER BY entity_name ASC"

    cur.execute(query, params)
    return [{**row, "created_at": to_iso(row.get("created_at"))} for row in cur.fetchall()]


def list_saved_senders(cur) -> list[str]:
    cur.execute("SELECT DISTINCT sender FROM saved_senders ORDER BY sender ASC")
    return [row["sender"] for row in cur.fetchall()]


def save_sender(cur, sender: str) -> bool:
    """Remember ``sender``; False when it was already saved."""
    cur.execute(
        "INSERT INTO saved_senders (sender) VALUES (%s) ON CONFLICT (sender) DO NOTHING RETURNING id",
        (sender,),
    )
    created = cur.fetchone() is not None
    if created:
        logger.info("Saved sender %r", sender)
    return created


def delete_saved_sender(cur, sender: str) -> bool:
    cur.execute("DELETE FROM saved_senders WHERE sender=%s RETURNING id", (sender,))
    return cur.fetchone() is not None
