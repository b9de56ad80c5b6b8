import json
import logging
import os
import re
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT: Dict[str, Any] = {"messages": []}

OPERATOR_SUFFIXES = ("_lte", "_gte", "_ne", "_like")


def _as_query_str(val: Any) -> str:
    # Query strings compare against the JSON text form of the value.
    if isinstance(val, bool):
        return "true" if val else "false"
    if val is None:
        return "null"
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val)


def _as_number(val: Any) -> Optional[float]:
    if isinstance(val, bool) or val is None:
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def _split_operator(key: str):
    for suffix in OPERATOR_SUFFIXES:
        if key.endswith(suffix) and len(key) > len(suffix):
            return key[: -len(suffix)], suffix[1:]
    return key, None


def _matches(record: Dict[str, Any], field: str, op: Optional[str], values: List[str]) -> bool:
    current = record.get(field)
    if op is None:
        return _as_query_str(current) in values
    if op == "ne":
        return _as_query_str(current) not in values
    if op == "like":
        text = _as_query_str(current)
        return any(re.search(v, text, re.IGNORECASE) for v in values)

    num = _as_number(current)
    if num is None:
        return False
    for v in values:
        bound = _as_number(v)
        if bound is None:
            return False
        if op == "lte" and not num <= bound:
            return False
        if op == "gte" and not num >= bound:
            return False
    return True


def _sort_records(records: List[Dict[str, Any]], sort_fields: List[str], orders: List[str]) -> List[Dict[str, Any]]:
    out = list(records)
    # Stable sorts applied from the last key to the first.
    for idx in range(len(sort_fields) - 1, -1, -1):
        field = sort_fields[idx]
        desc = idx < len(orders) and orders[idx].lower() == "desc"
        out.sort(key=lambda r: (r.get(field) is not None, r.get(field)), reverse=desc)
    return out


class JsonStore:
    """
    A JSON document of named collections, each a list of records with an
    integer `id`. The whole document is kept in memory and rewritten to
    `path` after every mutation.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.RLock()
        self.data = self._load()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            logger.info(f"Creating data file {self.path}")
            data = json.loads(json.dumps(DEFAULT_DOCUMENT))
            self._write(data)
            return data
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must hold a JSON object of collections.")
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        folder = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(folder, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)

    def _save(self) -> None:
        with self._lock:
            self._write(self.data)

    def has_collection(self, name: str) -> bool:
        return isinstance(self.data.get(name), list)

    def _collection(self, name: str) -> List[Dict[str, Any]]:
        if not self.has_collection(name):
            raise KeyError(name)
        return self.data[name]

    def _find(self, name: str, record_id: Any) -> Optional[Dict[str, Any]]:
        key = _as_query_str(record_id)
        for record in self._collection(name):
            if _as_query_str(record.get("id")) == key:
                return record
        return None

    def _next_id(self, name: str) -> int:
        ids = [r.get("id") for r in self._collection(name)]
        numeric = [int(i) for i in ids if isinstance(i, int) and not isinstance(i, bool)]
        return max(numeric) + 1 if numeric else 1

    # ----------------------------
    # Queries
    # ----------------------------

    def list(self, name: str, params: Optional[Mapping[str, Iterable[str]]] = None) -> List[Dict[str, Any]]:
        """
        Filter with json-server style params: `field=value`,
        `field_lte`, `field_gte`, `field_ne`, `field_like`, and order with
        `_sort` / `_order` (comma separated for several keys).
        """
        records = list(self._collection(name))
        params = params or {}

        for key, raw_values in params.items():
            if key.startswith("_"):
                continue
            values = [str(v) for v in raw_values]
            field, op = _split_operator(key)
            records = [r for r in records if _matches(r, field, op, values)]

        sort_raw = ",".join(params.get("_sort", []))
        if sort_raw:
            sort_fields = [s for s in sort_raw.split(",") if s]
            orders = [o for o in ",".join(params.get("_order", [])).split(",") if o]
            records = _sort_records(records, sort_fields, orders)
        return records

    def get(self, name: str, record_id: Any) -> Optional[Dict[str, Any]]:
        return self._find(name, record_id)

    # ----------------------------
    # Mutations
    # ----------------------------

    def create(self, name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        record = {k: v for k, v in body.items() if k != "id"}
        with self._lock:
            record["id"] = self._next_id(name)
            self._collection(name).append(record)
            self._save()
        logger.info(f"Created {name}/{record['id']}")
        return record

    def patch(self, name: str, record_id: Any, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._find(name, record_id)
            if record is None:
                return None
            record.update({k: v for k, v in fields.items() if k != "id"})
            self._save()
        logger.info(f"Patched {name}/{record['id']}: {sorted(fields)}")
        return record

    def replace(self, name: str, record_id: Any, body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._find(name, record_id)
            if record is None:
                return None
            kept_id = record["id"]
            record.clear()
            record.update({k: v for k, v in body.items() if k != "id"})
            record["id"] = kept_id
            self._save()
        logger.info(f"Replaced {name}/{kept_id}")
        return record

    def delete(self, name: str, record_id: Any) -> bool:
        with self._lock:
            record = self._find(name, record_id)
            if record is None:
                return False
            self._collection(name).remove(record)
            self._save()
        logger.info(f"Deleted {name}/{record['id']}")
        return True
