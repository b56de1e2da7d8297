import csv
import os
import pathlib
import tempfile
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from hypesignal.config import settings
from hypesignal.types import TradingPosition

FIELDS = [
    "id",
    "token",
    "amount",
    "purchase_price",
    "purchase_time",
    "sell_time",
    "sell_price",
    "profit",
    "tweet",
    "influencer",
    "profile_image_url",
    "status",
]

_TRANSITIONS = {"holding": {"sold", "failed"}}


def _data_dir() -> pathlib.Path:
    d = pathlib.Path(os.getenv("HYPESIGNAL_DATA_DIR", settings.hypesignal_data_dir))
    d.mkdir(parents=True, exist_ok=True)
    return d


def _read_csv(path: pathlib.Path) -> List[Dict[str, Any]]:
    if not path.exists():
        return []
    with open(path, newline="") as f:
        return list(csv.DictReader(f))


def _write_csv(path: pathlib.Path, rows: List[Dict[str, Any]]) -> None:
    """Rewrite via a temp file so readers never see a half-written ledger."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    with os.fdopen(fd, "w", newline="") as f:
        w = csv.DictWriter(f, fieldnames=FIELDS)
        w.writeheader()
        for r in rows:
            w.writerow({k: r.get(k, "") for k in FIELDS})
    os.replace(tmp, path)


def _to_row(pos: TradingPosition) -> Dict[str, Any]:
    row = pos.model_dump()
    for k in ("purchase_time", "sell_time"):
        row[k] = row[k].isoformat() if row[k] else ""
    return {k: ("" if v is None else v) for k, v in row.items()}


def _from_row(row: Dict[str, Any]) -> TradingPosition:
    data = {k: (v if v != "" else None) for k, v in row.items() if k in FIELDS}
    data["tweet"] = data.get("tweet") or ""
    data["influencer"] = data.get("influencer") or ""
    return TradingPosition(**data)


class PositionStore:
    """
    File-backed position ledger plus the processed-post marker set.
    positions.csv holds one row per position; processed_tweets.txt one id per line.
    """

    def __init__(self, data_dir: Optional[pathlib.Path] = None):
        self.data_dir = pathlib.Path(data_dir) if data_dir else _data_dir()
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.positions_csv = self.data_dir / "positions.csv"
        self.processed_txt = self.data_dir / "processed_tweets.txt"
        self._lock = threading.Lock()
        self._processed = self._load_processed()

    def _load_processed(self) -> set:
        if not self.processed_txt.exists():
            return set()
        return {line.strip() for line in self.processed_txt.read_text().splitlines() if line.strip()}

    def list_positions(self) -> List[TradingPosition]:
        with self._lock:
            return [_from_row(r) for r in _read_csv(self.positions_csv)]

    def get_holding_positions(self) -> List[TradingPosition]:
        return [p for p in self.list_positions() if p.status == "holding"]

    def has_holding_position(self, symbol: str) -> bool:
        sym = symbol.strip().upper()
        return any(p.token == sym for p in self.get_holding_positions())

    def save_position(self, position: TradingPosition) -> None:
        with self._lock:
            rows = _read_csv(self.positions_csv)
            if any(r.get("id") == position.id for r in rows):
                raise ValueError(f"position {position.id} already saved")
            rows.append(_to_row(position))
            _write_csv(self.positions_csv, rows)

    def update_status(
        self,
        position_id: str,
        status: str,
        sell_price: Optional[float] = None,
        sell_time: Optional[datetime] = None,
    ) -> TradingPosition:
        with self._lock:
            rows = _read_csv(self.positions_csv)
            for r in rows:
                if r.get("id") != position_id:
                    continue
                current = r.get("status") or "holding"
                if status not in _TRANSITIONS.get(current, set()):
                    raise ValueError(f"invalid status transition {current} -> {status}")
                r["status"] = status
                if sell_price is not None:
                    r["sell_price"] = sell_price
                    r["sell_time"] = (sell_time or datetime.now(timezone.utc)).isoformat()
                    r["profit"] = (sell_price - float(r["purchase_price"])) * float(r["amount"])
                _write_csv(self.positions_csv, rows)
                return _from_row(r)
        raise KeyError(position_id)

    def mark_tweet_as_processed(self, tweet_id: str) -> None:
        with self._lock:
            if tweet_id in self._processed:
                return
            self._processed.add(tweet_id)
            with open(self.processed_txt, "a") as f:
                f.write(f"{tweet_id}\n")

    def is_tweet_processed(self, tweet_id: str) -> bool:
        return tweet_id in self._processed
