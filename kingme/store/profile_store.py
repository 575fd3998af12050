"""
Profile Store

The single owner of the user's financial state.

DESIGN DECISION: The store is an explicit object, built once by the
factory and injected wherever it is needed. This keeps the invariant logic
testable with an in-memory storage fake and no global state.

CRITICAL INVARIANTS (enforced here, nowhere else):
1. At most one bank account is the primary income account
2. The first account added to an empty store becomes primary
3. Every synced crypto/defi asset carries its wallet address
4. income.asset_income always reflects the current asset list

Persistence policy: every successful mutation writes the whole snapshot
through the storage collaborator. A failed write is logged and recorded
in last_persistence_error; the in-memory mutation is NOT rolled back.
"""

import re
from decimal import Decimal
from typing import Any, Optional, TypeVar

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from kingme.audit import AuditLogger
from kingme.backup.codec import BackupCodec
from kingme.calculations import (
    analyze_all_accounts,
    calculate_annual_needs,
    calculate_asset_income,
    calculate_freedom,
)
from kingme.config import FreedomSettings, StoreSettings, get_settings
from kingme.errors import (
    DuplicateError,
    MalformedBackup,
    NotFoundError,
    ValidationError,
)
from kingme.models.audit import (
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from kingme.models.profile import (
    Asset,
    BankAccount,
    Debt,
    Desire,
    FreedomScoreHistory,
    Income,
    IncomeSource,
    Obligation,
    UserProfile,
    UserSettings,
    utc_now,
)
from kingme.models.reports import FreedomResult, OverallCashFlow
from kingme.services.storage import ProfileStorageInterface, StorageError
from kingme.store.reconciler import AssetReconciler

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

BASE58_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]+$")

# entity kind -> (profile attribute, model)
ENTITY_COLLECTIONS: dict[str, tuple[str, type[BaseModel]]] = {
    "asset": ("assets", Asset),
    "obligation": ("obligations", Obligation),
    "desire": ("desires", Desire),
    "debt": ("debts", Debt),
    "income_source": ("income_sources", IncomeSource),
}


def _coerce(model_cls: type[M], value: Any) -> M:
    """Accept a model instance or a mapping; return a validated private copy."""
    if isinstance(value, model_cls):
        return value.model_copy(deep=True)
    try:
        return model_cls.model_validate(value)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {model_cls.__name__}: {e.errors()[0]['msg']} "
            f"({e.error_count()} error(s))"
        ) from e


def _merge(current: M, fields: dict[str, Any]) -> M:
    """Re-validate current with fields applied on top."""
    model_cls = type(current)
    unknown = set(fields) - set(model_cls.model_fields)
    if unknown:
        raise ValidationError(f"Unknown {model_cls.__name__} fields: {sorted(unknown)}")
    if "id" in fields and fields["id"] != getattr(current, "id", None):
        raise ValidationError("Entity ids cannot be changed")
    return _coerce(model_cls, {**current.model_dump(), **fields})


class ProfileStore:
    """
    In-memory UserProfile plus the mutation contracts around it.

    Readers get deep copies; the only way to change state is through the
    methods below.
    """

    def __init__(
        self,
        storage: Optional[ProfileStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[StoreSettings] = None,
        materiality_threshold: Optional[Decimal] = None,
        freedom_policy: Optional[FreedomSettings] = None,
        codec: Optional[BackupCodec] = None,
    ):
        """
        Initialize the store with an empty profile.

        Args:
            storage: Where snapshots are persisted. If None, the store is
                    memory-only.
            audit_logger: Receives an event for every mutation.
            settings: Wallet format bounds. Defaults to environment config.
            materiality_threshold: Dust cutoff for synced assets.
            freedom_policy: Thresholds for the freedom score.
            codec: Backup encoder/decoder.
        """
        if settings is None or materiality_threshold is None:
            app_settings = get_settings()
            settings = settings or app_settings.store
            if materiality_threshold is None:
                materiality_threshold = app_settings.sync.materiality_threshold_usd

        self._storage = storage
        self._audit_logger = audit_logger
        self._settings = settings
        self._freedom_policy = freedom_policy
        self._codec = codec or BackupCodec()
        self._profile = UserProfile()
        self.last_persistence_error: Optional[str] = None
        self.reconciler = AssetReconciler(
            self,
            materiality_threshold=materiality_threshold,
            audit_logger=audit_logger,
        )

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    @property
    def profile(self) -> UserProfile:
        """A deep copy of the current snapshot."""
        return self._profile.model_copy(deep=True)

    @property
    def wallets(self) -> list[str]:
        return list(self._profile.wallets)

    def get_bank_account(self, account_id: str) -> BankAccount:
        """
        Raises:
            NotFoundError: If no account has this id.
        """
        return self._find_account(account_id).model_copy(deep=True)

    def freedom_score(self) -> FreedomResult:
        return calculate_freedom(self._profile, self._freedom_policy)

    def cash_flow(self) -> OverallCashFlow:
        return analyze_all_accounts(self._profile)

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def load(self) -> bool:
        """
        Replace the in-memory snapshot with the persisted one.

        Returns False when nothing has been persisted yet.

        Raises:
            StorageError: If the stored snapshot cannot be read or parsed.
                The in-memory snapshot is left as it was.
        """
        if self._storage is None:
            return False
        stored = self._storage.load_profile()
        if stored is None:
            logger.info("no_stored_profile")
            return False
        self._profile = self._normalized(stored)
        logger.info(
            "profile_loaded",
            accounts=len(stored.bank_accounts),
            assets=len(stored.assets),
            wallets=len(stored.wallets),
        )
        return True

    def _persist(self) -> None:
        if self._storage is None:
            return
        try:
            self._storage.save_profile(self._profile)
            self.last_persistence_error = None
        except StorageError as e:
            self.last_persistence_error = str(e)
            logger.error("profile_persist_failed", error=str(e))
            if self._audit_logger:
                self._audit_logger.log_persist_failed(str(e))

    def _audit(self, event) -> None:
        if self._audit_logger:
            self._audit_logger.log(event)

    # =========================================================================
    # BANK ACCOUNTS
    # =========================================================================

    def _find_account(self, account_id: str) -> BankAccount:
        for account in self._profile.bank_accounts:
            if account.id == account_id:
                return account
        raise NotFoundError(f"Bank account not found: {account_id}")

    def _assert_single_primary(self, primary_id: Optional[str]) -> list[str]:
        """
        Make primary_id the only primary account (None clears them all).

        This is the one place the primary flag is ever set to True.
        Returns the ids whose flag was cleared.
        """
        cleared = []
        for account in self._profile.bank_accounts:
            is_primary = account.id == primary_id
            if account.is_primary_income and not is_primary:
                cleared.append(account.id)
            account.is_primary_income = is_primary
        return cleared

    def add_bank_account(self, account: BankAccount | dict) -> BankAccount:
        """
        Add a bank account.

        The first account in an empty store becomes primary regardless of
        the requested flag. Requesting primary clears every other account.

        Raises:
            ValidationError: If required fields are missing or invalid.
            DuplicateError: If an account with the same id exists.
        """
        new_account = _coerce(BankAccount, account)
        if any(a.id == new_account.id for a in self._profile.bank_accounts):
            raise DuplicateError(f"Bank account already exists: {new_account.id}")

        make_primary = new_account.is_primary_income or not self._profile.bank_accounts
        new_account.is_primary_income = False
        self._profile.bank_accounts.append(new_account)

        if make_primary:
            self._assert_single_primary(new_account.id)

        self._persist()
        self._audit(AuditEventBuilder.account_added(
            new_account.id, new_account.name, new_account.is_primary_income
        ))
        return new_account.model_copy(deep=True)

    def update_bank_account(self, account_id: str, **fields) -> Optional[BankAccount]:
        """
        Merge fields into an account. Unknown ids are a silent no-op (returns None).

        is_primary_income=True goes through the primary-uniqueness routine.
        """
        try:
            current = self._find_account(account_id)
        except NotFoundError:
            logger.debug("update_unknown_account", account_id=account_id)
            return None

        wants_primary = fields.pop("is_primary_income", None)
        updated = _merge(current, fields)
        updated.is_primary_income = current.is_primary_income

        index = self._profile.bank_accounts.index(current)
        self._profile.bank_accounts[index] = updated

        if wants_primary:
            cleared = self._assert_single_primary(account_id)
            if cleared:
                self._audit(AuditEventBuilder.primary_changed(account_id, cleared))
        elif wants_primary is False:
            updated.is_primary_income = False

        self._persist()
        self._audit(AuditEventBuilder.entity_changed(
            AuditEventType.ACCOUNT_UPDATED, "bank_account", account_id
        ))
        return updated.model_copy(deep=True)

    def remove_bank_account(self, account_id: str) -> bool:
        """
        Remove an account. No cascade: obligations and income sources keep
        their now-dangling bank_account_id and are reported as unlinked.
        """
        before = len(self._profile.bank_accounts)
        self._profile.bank_accounts = [
            a for a in self._profile.bank_accounts if a.id != account_id
        ]
        if len(self._profile.bank_accounts) == before:
            return False

        self._persist()
        self._audit(AuditEventBuilder.entity_changed(
            AuditEventType.ACCOUNT_REMOVED, "bank_account", account_id
        ))
        return True

    def set_primary(self, account_id: str) -> None:
        """
        Make an account the primary income account.

        Raises:
            NotFoundError: If no account has this id.
        """
        account = self._find_account(account_id)
        if account.is_primary_income:
            return

        cleared = self._assert_single_primary(account_id)
        self._persist()
        self._audit(AuditEventBuilder.primary_changed(account_id, cleared))

    # =========================================================================
    # OTHER ENTITIES
    # =========================================================================

    def _collection(self, kind: str) -> tuple[list, type[BaseModel]]:
        attr, model_cls = ENTITY_COLLECTIONS[kind]
        return getattr(self._profile, attr), model_cls

    def _entity_added(self, kind: str, entity) -> None:
        if kind == "asset":
            self._refresh_asset_income()
        self._persist()
        self._audit(AuditEventBuilder.entity_changed(
            AuditEventType.ENTITY_ADDED, kind, entity.id
        ))

    def _add_entity(self, kind: str, value):
        items, model_cls = self._collection(kind)
        entity = _coerce(model_cls, value)
        if any(item.id == entity.id for item in items):
            raise DuplicateError(f"{model_cls.__name__} already exists: {entity.id}")
        items.append(entity)
        self._entity_added(kind, entity)
        return entity.model_copy(deep=True)

    def _update_entity(self, kind: str, entity_id: str, fields: dict):
        items, _ = self._collection(kind)
        for index, item in enumerate(items):
            if item.id == entity_id:
                items[index] = _merge(item, fields)
                if kind == "asset":
                    self._refresh_asset_income()
                self._persist()
                self._audit(AuditEventBuilder.entity_changed(
                    AuditEventType.ENTITY_UPDATED, kind, entity_id
                ))
                return items[index].model_copy(deep=True)
        return None

    def _remove_entity(self, kind: str, entity_id: str) -> bool:
        items, _ = self._collection(kind)
        remaining = [item for item in items if item.id != entity_id]
        if len(remaining) == len(items):
            return False
        items[:] = remaining
        if kind == "asset":
            self._refresh_asset_income()
        self._persist()
        self._audit(AuditEventBuilder.entity_changed(
            AuditEventType.ENTITY_REMOVED, kind, entity_id
        ))
        return True

    def add_asset(self, asset: Asset | dict) -> Asset:
        return self._add_entity("asset", asset)

    def update_asset(self, asset_id: str, **fields) -> Optional[Asset]:
        return self._update_entity("asset", asset_id, fields)

    def remove_asset(self, asset_id: str) -> bool:
        return self._remove_entity("asset", asset_id)

    def add_obligation(self, obligation: Obligation | dict) -> Obligation:
        return self._add_entity("obligation", obligation)

    def update_obligation(self, obligation_id: str, **fields) -> Optional[Obligation]:
        return self._update_entity("obligation", obligation_id, fields)

    def remove_obligation(self, obligation_id: str) -> bool:
        return self._remove_entity("obligation", obligation_id)

    def add_desire(self, desire: Desire | dict) -> Desire:
        return self._add_entity("desire", desire)

    def update_desire(self, desire_id: str, **fields) -> Optional[Desire]:
        return self._update_entity("desire", desire_id, fields)

    def remove_desire(self, desire_id: str) -> bool:
        return self._remove_entity("desire", desire_id)

    def add_debt(self, debt: Debt | dict) -> Debt:
        return self._add_entity("debt", debt)

    def update_debt(self, debt_id: str, **fields) -> Optional[Debt]:
        return self._update_entity("debt", debt_id, fields)

    def remove_debt(self, debt_id: str) -> bool:
        return self._remove_entity("debt", debt_id)

    def add_income_source(self, source: IncomeSource | dict) -> IncomeSource:
        return self._add_entity("income_source", source)

    def update_income_source(self, source_id: str, **fields) -> Optional[IncomeSource]:
        return self._update_entity("income_source", source_id, fields)

    def remove_income_source(self, source_id: str) -> bool:
        return self._remove_entity("income_source", source_id)

    def set_income(self, **fields) -> Income:
        """
        Update salary / other_income.

        Raises:
            ValidationError: On asset_income, which is derived from assets.
        """
        if "asset_income" in fields:
            raise ValidationError("asset_income is derived from assets and cannot be set")
        self._profile.income = _merge(self._profile.income, fields)
        self._refresh_asset_income()
        self._persist()
        return self._profile.income.model_copy()

    def update_settings(self, **fields) -> UserSettings:
        self._profile.settings = _merge(self._profile.settings, fields)
        self._persist()
        return self._profile.settings.model_copy()

    # =========================================================================
    # WALLETS & SYNCED ASSETS
    # =========================================================================

    def _validate_wallet(self, address: str) -> str:
        if not isinstance(address, str):
            raise ValidationError("Wallet address must be a string")
        address = address.strip()
        low, high = self._settings.wallet_min_length, self._settings.wallet_max_length
        if not (low <= len(address) <= high):
            raise ValidationError(
                f"Wallet address must be {low}-{high} characters, got {len(address)}"
            )
        if not BASE58_PATTERN.match(address):
            raise ValidationError("Wallet address is not valid base58")
        return address

    def connect_wallet(self, address: str) -> bool:
        """
        Add a wallet address.

        Returns False (and changes nothing) if it is already connected.

        Raises:
            ValidationError: If the address is not a plausible base58 key.
        """
        address = self._validate_wallet(address)
        if address in self._profile.wallets:
            self._audit(AuditEventBuilder.wallet_connected(address, already_connected=True))
            return False

        self._profile.wallets.append(address)
        self._persist()
        self._audit(AuditEventBuilder.wallet_connected(address))
        return True

    def disconnect_wallet(self, address: str) -> int:
        """
        Remove a wallet and every synced asset it owns.

        Returns the number of assets removed.
        """
        self._profile.wallets = [w for w in self._profile.wallets if w != address]
        removed = self.reconciler.remove_assets_for_wallet(address)
        if not removed:
            # The reconciler only commits when it removed something
            self._persist()
        self._audit(AuditEventBuilder.wallet_disconnected(address, removed))
        return removed

    def replace_assets(self, assets: list[Asset], mark_synced: bool = False) -> None:
        """
        Swap the whole asset list in one commit.

        Used by AssetReconciler; callers are responsible for keeping
        manual assets in the list.
        """
        self._profile.assets = [a.model_copy(deep=True) for a in assets]
        if mark_synced:
            self._profile.last_synced = utc_now()
        self._refresh_asset_income()
        self._persist()

    def _refresh_asset_income(self) -> None:
        # Negative real-estate cash flow can push the total below zero
        total = calculate_asset_income(self._profile.assets)
        self._profile.income.asset_income = max(total, Decimal("0"))

    # =========================================================================
    # SNAPSHOT LIFECYCLE
    # =========================================================================

    def complete_onboarding(self) -> FreedomResult:
        """Mark onboarding done and record the first freedom score."""
        result = self.freedom_score()
        total_needs = calculate_annual_needs(self._profile)
        self._profile.onboarding_complete = True
        self._profile.freedom_history.append(FreedomScoreHistory(
            days=result.days,
            asset_income=self._profile.income.asset_income,
            total_needs=total_needs,
        ))
        self._persist()
        self._audit(AuditEventBuilder.snapshot_event(
            AuditEventType.ONBOARDING_COMPLETED,
            "Onboarding completed",
            details={"days": result.days, "state": result.state.value},
        ))
        return result

    def _normalized(self, profile: UserProfile) -> UserProfile:
        """
        Copy of profile with store invariants re-established.

        Older backups may flag several accounts as primary; the first wins.
        """
        profile = profile.model_copy(deep=True)
        primary = profile.primary_account
        for account in profile.bank_accounts:
            account.is_primary_income = primary is not None and account is primary
        profile.income.asset_income = max(
            calculate_asset_income(profile.assets), Decimal("0")
        )
        return profile

    def replace_profile(self, profile: UserProfile) -> None:
        """Replace the whole snapshot (restore, import). Last write wins."""
        self._profile = self._normalized(profile)
        self._persist()

    def reset_store(self) -> None:
        """Replace everything with the default empty snapshot."""
        self._profile = UserProfile()
        self._persist()
        self._audit(AuditEventBuilder.snapshot_event(
            AuditEventType.STORE_RESET, "Store reset to defaults"
        ))

    def export_backup(self) -> str:
        text = self._codec.export_backup(self._profile)
        self._audit(AuditEventBuilder.snapshot_event(
            AuditEventType.BACKUP_EXPORTED,
            "Backup exported",
            details={"bytes": len(text)},
        ))
        return text

    def import_backup(self, text: str) -> UserProfile:
        """
        Replace the snapshot with the one in a backup.

        Raises:
            MalformedBackup: If the text is not a valid backup. The store
                is left unchanged.
        """
        try:
            profile = self._codec.import_backup(text)
        except MalformedBackup as e:
            self._audit(AuditEventBuilder.snapshot_event(
                AuditEventType.BACKUP_REJECTED,
                "Backup import rejected",
                severity=AuditSeverity.WARNING,
                error_message=str(e),
            ))
            raise

        self.replace_profile(profile)
        self._audit(AuditEventBuilder.snapshot_event(
            AuditEventType.BACKUP_IMPORTED,
            "Backup imported",
            details={
                "accounts": len(profile.bank_accounts),
                "assets": len(profile.assets),
            },
        ))
        return self.profile
