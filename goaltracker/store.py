import json
import logging
import uuid
from typing import Any, Dict, List, Optional
from mysql.connector import Error
from .db_conn import TABLES, get_conn
from .errors import ConnectivityError, ValidationError

logger = logging.getLogger(__name__)


class RecordStore:
    """Owner-scoped row access over the named record sets in TABLES.

    Every call filters by `user_id`; table and column names are checked
    against TABLES before they reach SQL.
    """

    def __init__(self, connect=get_conn):
        self._connect = connect

    # ------- Helpers -------

    def _table(self, table: str) -> Dict[str, List[str]]:
        if table not in TABLES:
            raise ValidationError(f"Unknown record set: {table}")
        return TABLES[table]

    def _check_columns(self, table: str, columns) -> None:
        allowed = self._table(table)["columns"]
        unknown = [c for c in columns if c not in allowed]
        if unknown:
            raise ValidationError(f"Unknown fields for {table}: {', '.join(unknown)}")

    def _encode(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        json_cols = self._table(table)["json"]
        return {k: json.dumps(v) if k in json_cols and v is not None else v for k, v in row.items()}

    def _decode(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        spec = self._table(table)
        decoded = dict(row)
        for col in spec["bool"]:
            if col in decoded and decoded[col] is not None:
                decoded[col] = bool(decoded[col])
        for col in spec["json"]:
            value = decoded.get(col)
            if isinstance(value, (bytes, bytearray)):
                value = value.decode("utf-8")
            if isinstance(value, str):
                try:
                    decoded[col] = json.loads(value)
                except json.JSONDecodeError:
                    logger.warning(f"Invalid JSON in {table}.{col}, returning empty object")
                    decoded[col] = {}
        return decoded

    def _run(self, sql: str, params: tuple, fetch: bool = False):
        try:
            with self._connect() as cnx, cnx.cursor(dictionary=True) as cur:
                cur.execute(sql, params)
                if fetch:
                    return cur.fetchall()
                cnx.commit()
                return cur.rowcount
        except Error as e:
            logger.error(f"Database error: {e}")
            raise ConnectivityError() from e

    # ------- Queries -------

    def select(self, table: str, user_id: str, **filters) -> List[Dict[str, Any]]:
        self._check_columns(table, filters)
        where = ["user_id = %s"] + [f"{col} = %s" for col in filters]
        sql = f"SELECT * FROM {table} WHERE {' AND '.join(where)} ORDER BY created_at"
        rows = self._run(sql, (user_id, *filters.values()), fetch=True)
        return [self._decode(table, row) for row in rows]

    def select_one(self, table: str, user_id: str, **filters) -> Optional[Dict[str, Any]]:
        rows = self.select(table, user_id, **filters)
        return rows[0] if rows else None

    def insert(self, table: str, user_id: str, row: Dict[str, Any]) -> Dict[str, Any]:
        record = {**row, "id": row.get("id") or str(uuid.uuid4()), "user_id": user_id}
        self._check_columns(table, record)
        record = self._encode(table, record)
        cols = ", ".join(record)
        marks = ", ".join(["%s"] * len(record))
        self._run(f"INSERT INTO {table} ({cols}) VALUES ({marks})", tuple(record.values()))
        logger.info(f"Inserted {table} row {record['id']} for user {user_id}")
        saved = self.select_one(table, user_id, id=record["id"])
        if not saved:
            raise ConnectivityError(f"The {table} record was not saved properly.")
        return saved

    def update(self, table: str, user_id: str, record_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not updates:
            return self.select_one(table, user_id, id=record_id)
        self._check_columns(table, updates)
        updates = self._encode(table, updates)
        assignments = ", ".join(f"{col} = %s" for col in updates)
        self._run(
            f"UPDATE {table} SET {assignments} WHERE id = %s AND user_id = %s",
            (*updates.values(), record_id, user_id),
        )
        return self.select_one(table, user_id, id=record_id)

    def delete(self, table: str, user_id: str, record_id: str) -> bool:
        self._table(table)
        count = self._run(f"DELETE FROM {table} WHERE id = %s AND user_id = %s", (record_id, user_id))
        logger.info(f"Deleted {count} {table} row(s) with id {record_id}")
        return count > 0

    def upsert(self, table: str, user_id: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or update the single row a user owns in `table`."""
        existing = self.select_one(table, user_id)
        if existing:
            return self.update(table, user_id, existing["id"], row)
        return self.insert(table, user_id, row)


_default_store = None


def get_store() -> RecordStore:
    global _default_store
    if _default_store is None:
        _default_store = RecordStore()
    return _default_store
