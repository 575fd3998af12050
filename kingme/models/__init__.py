"""
Data Models Package

This package contains all Pydantic models used by the KingMe core.
All data flowing through the store must conform to these schemas.
"""

from kingme.models.profile import (
    Asset,
    AssetType,
    AvatarType,
    BankAccount,
    BankAccountType,
    BusinessMetadata,
    CryptoMetadata,
    Debt,
    Desire,
    DesirePriority,
    FreedomScoreHistory,
    Income,
    IncomeFrequency,
    IncomeSource,
    Obligation,
    ObligationCategory,
    OtherMetadata,
    RealEstateMetadata,
    StockMetadata,
    SYNCED_ASSET_TYPES,
    SyncFrequency,
    UserProfile,
    UserSettings,
)
from kingme.models.reports import (
    AccountStatus,
    CashFlowAnalysis,
    DesireImpact,
    FreedomResult,
    FreedomState,
    HealthStatus,
    OpportunityCost,
    OverallCashFlow,
)
from kingme.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Profile models
    "Asset",
    "AssetType",
    "AvatarType",
    "BankAccount",
    "BankAccountType",
    "BusinessMetadata",
    "CryptoMetadata",
    "Debt",
    "Desire",
    "DesirePriority",
    "FreedomScoreHistory",
    "Income",
    "IncomeFrequency",
    "IncomeSource",
    "Obligation",
    "ObligationCategory",
    "OtherMetadata",
    "RealEstateMetadata",
    "StockMetadata",
    "SYNCED_ASSET_TYPES",
    "SyncFrequency",
    "UserProfile",
    "UserSettings",
    # Report models
    "AccountStatus",
    "CashFlowAnalysis",
    "DesireImpact",
    "FreedomResult",
    "FreedomState",
    "HealthStatus",
    "OpportunityCost",
    "OverallCashFlow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
