"""Shared fakes: an in-memory Supabase query builder, Telegram client and image host."""
from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Optional

import pytest

from storebot.catalog import CatalogIndexer
from storebot.config import Config
from storebot.database import Database
from storebot.errors import TelegramError, UploadFailed
from storebot.flows import BotFlows
from storebot.main import Services
from storebot.orders import OrderService
from storebot.payments import ProofIngestion


# ============================================================
# SUPABASE
# ============================================================
class FakeQuery:
    def __init__(self, store: "FakeSupabase", table: str):
        self.store = store
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.count_mode = None
        self.payload = None
        self.filters = []
        self.order_by = None
        self.limit_n = None

    def select(self, columns="*", count=None):
        self.op, self.columns, self.count_mode = "select", columns, count
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def upsert(self, payload, on_conflict=None):
        self.op, self.payload = "upsert", payload
        self.on_conflict = on_conflict or "id"
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: str(row.get(column)) == str(value))
        return self

    def in_(self, column, values):
        wanted = {str(v) for v in values}
        self.filters.append(lambda row: str(row.get(column)) in wanted)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def _matching(self):
        rows = [r for r in self.store.tables[self.table] if all(f(r) for f in self.filters)]
        if self.order_by:
            column, desc = self.order_by
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column), r["id"]), reverse=desc)
        if self.limit_n is not None:
            rows = rows[: self.limit_n]
        return rows

    def _with_relations(self, row):
        row = dict(row)
        if "products(" in self.columns:
            product = self.store.find("products", row.get("product_id"))
            row["products"] = {"name": product["name"]} if product else None
        if "users(" in self.columns:
            user = self.store.find("users", row.get("user_id"), key="telegram_id")
            row["users"] = {"username": user.get("username"), "full_name": user.get("full_name")} if user else None
        return row

    def execute(self):
        if self.table in self.store.failing:
            raise RuntimeError(f"{self.table} unavailable")
        self.store.calls.append((self.table, self.op))
        table = self.store.tables[self.table]

        if self.op == "select":
            matched = self._matching()
            count = len([r for r in table if all(f(r) for f in self.filters)]) if self.count_mode else None
            return SimpleNamespace(data=[self._with_relations(r) for r in matched], count=count)

        if self.op == "insert":
            rows = self.payload if isinstance(self.payload, list) else [self.payload]
            created = []
            for row in rows:
                row = dict(row)
                row.setdefault("id", next(self.store.ids))
                table.append(row)
                created.append(dict(row))
            return SimpleNamespace(data=created, count=None)

        if self.op == "upsert":
            key = self.on_conflict
            existing = self.store.find(self.table, self.payload[key], key=key)
            if existing:
                existing.update(self.payload)
                return SimpleNamespace(data=[dict(existing)], count=None)
            row = dict(self.payload)
            row.setdefault("id", next(self.store.ids))
            table.append(row)
            return SimpleNamespace(data=[dict(row)], count=None)

        if self.op == "update":
            matched = self._matching()
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in matched], count=None)

        if self.op == "delete":
            matched = self._matching()
            for row in matched:
                table.remove(row)
            return SimpleNamespace(data=[dict(r) for r in matched], count=None)

        raise AssertionError(f"unsupported op {self.op}")


class FakeSupabase:
    """Just enough of supabase.Client for the queries the bot runs."""

    def __init__(self):
        self.tables = {name: [] for name in ("users", "products", "orders", "chat_rooms", "chat_messages")}
        self.ids = itertools.count(1)
        self.failing = set()
        self.calls = []
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def table(self, name):
        return FakeQuery(self, name)

    def find(self, table, value, key="id") -> Optional[dict]:
        for row in self.tables[table]:
            if str(row.get(key)) == str(value):
                return row
        return None

    def add_product(self, name, price=0, variants=None, unit="", is_active=True, **extra) -> dict:
        row = {
            "id": next(self.ids),
            "name": name,
            "price": price,
            "unit": unit,
            "description": extra.get("description", ""),
            "software_type": extra.get("software_type", ""),
            "is_active": is_active,
            "variants": variants,
        }
        self.tables["products"].append(row)
        return row

    def add_order(self, user_id, product_id, total_price, status="pending", **extra) -> dict:
        self._clock += timedelta(minutes=1)
        row = {
            "id": next(self.ids),
            "user_id": user_id,
            "product_id": product_id,
            "total_price": total_price,
            "status": status,
            "variant_name": extra.get("variant_name"),
            "payment_proof_url": extra.get("payment_proof_url"),
            "admin_notes": extra.get("admin_notes"),
            "created_at": self._clock.isoformat(),
        }
        self.tables["orders"].append(row)
        return row

    def writes(self, table):
        return [c for c in self.calls if c[0] == table and c[1] != "select"]


# ============================================================
# TELEGRAM / IMAGE HOST
# ============================================================
class FakeTelegram:
    def __init__(self):
        self.calls = []
        self.failing = set()
        self._message_ids = itertools.count(100)

    def _record(self, method, **kwargs):
        if method in self.failing:
            raise TelegramError(method, "Bad Request: simulated")
        self.calls.append((method, kwargs))

    def sent(self, method=None):
        return [kw for m, kw in self.calls if method is None or m == method]

    async def send_message(self, chat_id, text, reply_markup=None, parse_mode="HTML"):
        self._record("sendMessage", chat_id=chat_id, text=text, reply_markup=reply_markup)
        return {"message_id": next(self._message_ids)}

    async def send_photo(self, chat_id, photo, caption="", reply_markup=None, parse_mode="HTML"):
        self._record("sendPhoto", chat_id=chat_id, photo=photo, caption=caption, reply_markup=reply_markup)
        return {"message_id": next(self._message_ids)}

    async def edit_message_text(self, chat_id, message_id, text, reply_markup=None, parse_mode="HTML"):
        self._record("editMessageText", chat_id=chat_id, message_id=message_id, text=text, reply_markup=reply_markup)
        return {"message_id": message_id}

    async def delete_message(self, chat_id, message_id):
        self._record("deleteMessage", chat_id=chat_id, message_id=message_id)
        return True

    async def answer_callback_query(self, callback_query_id, text=None):
        self._record("answerCallbackQuery", callback_query_id=callback_query_id)
        return True

    async def download_file(self, file_id):
        self._record("getFile", file_id=file_id)
        return b"\xff\xd8fake-jpeg"


class FakeImageHost:
    def __init__(self):
        self.uploads = []
        self.fail = False

    async def upload(self, data: bytes, filename: str, content_type: str = "image/jpeg") -> str:
        if self.fail:
            raise UploadFailed("simulated outage")
        self.uploads.append((filename, data, content_type))
        return f"https://files.example.test/{filename}"


# ============================================================
# FIXTURES
# ============================================================
@pytest.fixture
def config():
    cfg = Config()
    cfg.TELEGRAM_BOT_TOKEN = "123:test"
    cfg.TELEGRAM_WEBHOOK_SECRET = ""
    cfg.SUPABASE_URL = "https://example.supabase.co"
    cfg.SUPABASE_SERVICE_KEY = "service-key"
    cfg.ADMIN_USERNAME = "admin"
    cfg.ADMIN_PASSWORD = "secret"
    cfg.ADMIN_CHAT_ID = "999"
    cfg.WELCOME_PHOTO_URL = ""
    cfg.MAX_BUTTONS_DISPLAY = 50
    cfg.BUTTONS_PER_ROW = 6
    cfg.PAGE_SIZE = 50
    cfg.ENABLE_CHAT_LOG = False
    return cfg


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def telegram():
    return FakeTelegram()


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
def db(supabase, config):
    return Database(supabase, max_display=config.MAX_BUTTONS_DISPLAY)


@pytest.fixture
def orders(db, telegram):
    return OrderService(db, telegram)


@pytest.fixture
def ingestion(orders, image_host, telegram, config):
    return ProofIngestion(orders, image_host, telegram, config.ADMIN_CHAT_ID)


@pytest.fixture
def indexer(config):
    return CatalogIndexer(config.MAX_BUTTONS_DISPLAY, config.PAGE_SIZE)


@pytest.fixture
def flows(config, db, telegram, orders, ingestion, indexer):
    return BotFlows(config, db, telegram, orders, ingestion, indexer)


@pytest.fixture
def services(config, db, telegram, orders, flows):
    return Services(config=config, db=db, telegram=telegram, orders=orders, flows=flows)


def text_update(text: str, chat_id: Any = 42, **sender) -> dict:
    return {
        "update_id": 1,
        "message": {
            "message_id": 10,
            "chat": {"id": chat_id, "type": "private"},
            "from": {"id": chat_id, "first_name": sender.get("first_name", "Budi"),
                     "username": sender.get("username", "budi")},
            "text": text,
        },
    }


def photo_update(chat_id: Any = 42) -> dict:
    return {
        "update_id": 2,
        "message": {
            "message_id": 11,
            "chat": {"id": chat_id, "type": "private"},
            "from": {"id": chat_id, "first_name": "Budi", "username": "budi"},
            "photo": [
                {"file_id": "small", "width": 90, "height": 90},
                {"file_id": "large", "width": 1280, "height": 1280},
            ],
        },
    }


def callback_update(data: str, chat_id: Any = 42, message_id: int = 77) -> dict:
    return {
        "update_id": 3,
        "callback_query": {
            "id": "cb-1",
            "from": {"id": chat_id, "first_name": "Budi"},
            "message": {"message_id": message_id, "chat": {"id": chat_id}},
            "data": data,
        },
    }
