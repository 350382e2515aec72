"""Persistence for access accounts (a single JSON file)."""
import json
import os
import re
import secrets
import string
import tempfile
import threading
import time
from pathlib import Path
from typing import Iterable, Optional

from errors import AccountNotFoundError, DuplicatePinError, ValidationError
from logging_util import get_logger
from models import AccessAccount, utc_now
from utils import normalize_folder

logger = get_logger(__name__)

PIN_RE = re.compile(r"^[0-9]{4,6}$")
_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_account_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"acc_{int(time.time() * 1000)}_{suffix}"


def validate_account_fields(name: Optional[str], pin: Optional[str]) -> tuple[str, str]:
    name = (name or "").strip()
    pin = (pin or "").strip()
    if not name or not pin:
        raise ValidationError("Name and PIN are required")
    if not PIN_RE.match(pin):
        raise ValidationError("PIN must be 4 to 6 digits", code="INVALID_PIN_FORMAT")
    return name, pin


def clean_folders(folders: Optional[Iterable[str]]) -> list[str]:
    cleaned = []
    for folder in folders or []:
        folder = normalize_folder(str(folder))
        if folder and folder not in cleaned:
            cleaned.append(folder)
    return cleaned


class AccountStore:
    """Access accounts stored as a JSON array, rewritten wholesale on change.

    Accounts are loaded from disk on every call. All read-modify-write
    sequences hold one lock so PIN uniqueness is checked against the same
    state that gets written.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()

    def init_storage(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._save([])

    def _load(self) -> list[AccessAccount]:
        try:
            records = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Could not read %s: %s", self.path, e)
            return []
        if not isinstance(records, list):
            return []
        return [AccessAccount.from_record(r) for r in records if isinstance(r, dict) and "id" in r]

    def _save(self, accounts: list[AccessAccount]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps([a.to_record() for a in accounts], indent=2)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".accounts-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def list_accounts(self) -> list[AccessAccount]:
        with self._lock:
            return self._load()

    def get_account(self, account_id: str) -> AccessAccount:
        with self._lock:
            for account in self._load():
                if account.id == account_id:
                    return account
        raise AccountNotFoundError()

    def create_account(
        self, name: Optional[str], pin: Optional[str], assigned_folders: Optional[Iterable[str]] = None
    ) -> AccessAccount:
        name, pin = validate_account_fields(name, pin)
        with self._lock:
            accounts = self._load()
            if any(a.pin == pin for a in accounts):
                raise DuplicatePinError()
            account = AccessAccount(
                id=generate_account_id(),
                name=name,
                pin=pin,
                assigned_folders=clean_folders(assigned_folders),
            )
            accounts.append(account)
            self._save(accounts)
        logger.info("Created access account %s (%s)", account.id, account.name)
        return account

    def update_account(
        self,
        account_id: str,
        name: Optional[str],
        pin: Optional[str],
        assigned_folders: Optional[Iterable[str]] = None,
    ) -> AccessAccount:
        name, pin = validate_account_fields(name, pin)
        with self._lock:
            accounts = self._load()
            account = next((a for a in accounts if a.id == account_id), None)
            if account is None:
                raise AccountNotFoundError()
            if any(a.pin == pin and a.id != account_id for a in accounts):
                raise DuplicatePinError()
            account.name = name
            account.pin = pin
            account.assigned_folders = clean_folders(assigned_folders)
            self._save(accounts)
        logger.info("Updated access account %s", account_id)
        return account

    def delete_account(self, account_id: str) -> None:
        with self._lock:
            accounts = self._load()
            remaining = [a for a in accounts if a.id != account_id]
            if len(remaining) == len(accounts):
                raise AccountNotFoundError()
            self._save(remaining)
        logger.info("Deleted access account %s", account_id)

    def authenticate(self, pin: str) -> Optional[AccessAccount]:
        """Find the account owning pin and stamp its last access time."""
        with self._lock:
            accounts = self._load()
            account = next((a for a in accounts if a.pin == pin), None)
            if account is None:
                return None
            account.last_accessed = utc_now()
            self._save(accounts)
            return account
