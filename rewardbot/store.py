import hashlib
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from pydantic import ValidationError

from .models import UserRecord

logger = logging.getLogger(__name__)

REF_CODE_LENGTH = 8


class StoreError(Exception):
    pass


class StoreIOError(StoreError):
    pass


class StoreCorruptError(StoreError):
    pass


def derive_ref_code(user_id: str, attempt: int = 0) -> str:
    seed = user_id if attempt == 0 else f"{user_id}:{attempt}"
    return hashlib.md5(seed.encode("utf-8")).hexdigest()[:REF_CODE_LENGTH]


def read_records(path: Path) -> dict[str, UserRecord]:
    """Parse the persisted ledger file.

    Returns an empty mapping when the file does not exist. Raises
    StoreCorruptError when the content is not a JSON object of valid
    records, and StoreIOError when the file exists but cannot be read.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise StoreIOError(f"Cannot read {path}: {e}") from e

    try:
        payload = json.loads(content)
    except json.JSONDecodeError as e:
        raise StoreCorruptError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(payload, dict):
        raise StoreCorruptError(f"Expected a JSON object in {path}, got {type(payload).__name__}")

    records = {}
    for user_id, fields in payload.items():
        if not isinstance(fields, dict):
            raise StoreCorruptError(f"Record {user_id} in {path} is not an object")
        try:
            records[user_id] = UserRecord(**{**fields, "id": user_id})
        except ValidationError as e:
            raise StoreCorruptError(f"Record {user_id} in {path} is invalid: {e}") from e
    return records


def write_records(path: Path, records: dict[str, UserRecord]) -> None:
    payload = {
        user_id: record.model_dump(mode="json", exclude={"id"})
        for user_id, record in records.items()
    }
    directory = path.parent
    tmp_name = None
    try:
        directory.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", dir=directory, prefix=f".{path.name}.", suffix=".tmp",
            delete=False, encoding="utf-8",
        ) as tmp:
            tmp_name = tmp.name
            json.dump(payload, tmp, indent=2)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise StoreIOError(f"Cannot write {path}: {e}") from e


class ReferralIndex:
    def __init__(self):
        self._by_code: dict[str, str] = {}

    def rebuild(self, records: Iterable[UserRecord]) -> list[UserRecord]:
        """Index ``records`` and return those whose code was already taken."""
        self._by_code = {}
        clashes = []
        for record in records:
            owner = self._by_code.setdefault(record.ref_code, record.id)
            if owner != record.id:
                clashes.append(record)
        return clashes

    def update(self, codes: dict[str, str]) -> None:
        self._by_code.update(codes)

    def find_by_code(self, code: str) -> Optional[str]:
        return self._by_code.get(code)


class Transaction:
    """Exclusive view over the ledger.

    Reads return copies; changes become visible to later reads in the same
    transaction once passed to put(), and reach the file only on commit.
    """

    def __init__(self, store: "LedgerStore"):
        self._store = store
        self._staged: dict[str, UserRecord] = {}
        self._staged_codes: dict[str, str] = {}
        self.closed = False

    @property
    def dirty(self) -> bool:
        return bool(self._staged)

    def get(self, user_id: str) -> Optional[UserRecord]:
        self._ensure_open()
        record = self._staged.get(user_id)
        if record is None:
            record = self._store._records.get(user_id)
        return record.model_copy() if record is not None else None

    def get_or_create(self, user_id: str) -> UserRecord:
        record = self.get(user_id)
        if record is not None:
            return record
        record = UserRecord(id=user_id, ref_code=self._unique_code(user_id))
        self.put(record)
        logger.info(f"Created record for {user_id} with referral code {record.ref_code}")
        return record.model_copy()

    def put(self, record: UserRecord) -> None:
        self._ensure_open()
        owner = self.find_by_code(record.ref_code)
        if owner is not None and owner != record.id:
            raise StoreError(f"Referral code {record.ref_code} already belongs to {owner}")
        self._staged[record.id] = record.model_copy()
        if owner is None:
            self._staged_codes[record.ref_code] = record.id

    def find_by_code(self, code: str) -> Optional[str]:
        self._ensure_open()
        if code in self._staged_codes:
            return self._staged_codes[code]
        return self._store._index.find_by_code(code)

    def records(self) -> list[UserRecord]:
        self._ensure_open()
        merged = {**self._store._records, **self._staged}
        return [record.model_copy() for record in merged.values()]

    def _unique_code(self, user_id: str) -> str:
        attempt = 0
        code = derive_ref_code(user_id)
        while self.find_by_code(code) is not None:
            attempt += 1
            code = derive_ref_code(user_id, attempt)
        return code

    def _ensure_open(self) -> None:
        if self.closed:
            raise StoreError("Transaction is already closed")


class LedgerStore:
    def __init__(self, path: Union[str, Path], autoload: bool = True):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._records: dict[str, UserRecord] = {}
        self._index = ReferralIndex()
        if autoload:
            self.load()

    def load(self) -> dict[str, UserRecord]:
        try:
            records = read_records(self.path)
        except StoreCorruptError as e:
            logger.error(f"DATA LOSS: ledger file is corrupt, starting with an empty store. {e}")
            self._quarantine()
            records = {}

        with self._lock:
            self._records = records
            for record in self._index.rebuild(records.values()):
                self._reassign_code(record)
        logger.info(f"Loaded {len(records)} user records from {self.path}")
        return dict(records)

    def begin_transaction(self) -> Transaction:
        self._lock.acquire()
        return Transaction(self)

    def commit(self, tx: Transaction) -> None:
        tx._ensure_open()
        try:
            if tx.dirty:
                merged = {**self._records, **tx._staged}
                write_records(self.path, merged)
                self._records = merged
                self._index.update(tx._staged_codes)
        except StoreIOError as e:
            logger.error(f"Commit failed, {len(tx._staged)} staged records discarded: {e}")
            raise
        finally:
            tx.closed = True
            self._lock.release()

    def rollback(self, tx: Transaction) -> None:
        if tx.closed:
            return
        tx.closed = True
        self._lock.release()

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        tx = self.begin_transaction()
        try:
            yield tx
        except BaseException:
            self.rollback(tx)
            raise
        self.commit(tx)

    # Single locked reads for inspection and tests; request handling goes through transaction()
    def get(self, user_id: str) -> Optional[UserRecord]:
        with self.transaction() as tx:
            return tx.get(user_id)

    def snapshot(self) -> list[UserRecord]:
        with self.transaction() as tx:
            return tx.records()

    def _reassign_code(self, record: UserRecord) -> None:
        # Kept in memory only; the next commit persists it
        owner = self._index.find_by_code(record.ref_code)
        attempt = 1
        code = derive_ref_code(record.id, attempt)
        while self._index.find_by_code(code) is not None:
            attempt += 1
            code = derive_ref_code(record.id, attempt)
        logger.warning(f"Referral code {record.ref_code} of {record.id} already belongs to {owner}; reassigned {code}")
        record.ref_code = code
        self._index.update({code: record.id})

    def _quarantine(self) -> None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        target = self.path.with_name(f"{self.path.name}.corrupt-{stamp}")
        try:
            os.replace(self.path, target)
        except OSError as e:
            logger.error(f"Could not move corrupt ledger file aside: {e}")
            return
        logger.warning(f"Corrupt ledger file moved to {target}")
