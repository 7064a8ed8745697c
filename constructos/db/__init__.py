"""Database layer for the estimating engine with async SQLAlchemy."""

from constructos.db.connection import get_session, init_db
from constructos.db.models import (
    ActivityModel,
    Base,
    DocumentAccessTokenModel,
    EstimateItemModel,
    EstimateModel,
    EstimateSectionModel,
    EstimatingSettingsModel,
    GroupRuleModel,
    LastBuyCostModel,
    ProjectModel,
    PurchaseOrderLineSnapshotModel,
    PurchaseOrderModel,
    QuoteVersionModel,
    VariationModel,
    WorkOrderLineSnapshotModel,
    WorkOrderModel,
)

__all__ = [
    "Base",
    "ActivityModel",
    "DocumentAccessTokenModel",
    "EstimateItemModel",
    "EstimateModel",
    "EstimateSectionModel",
    "EstimatingSettingsModel",
    "GroupRuleModel",
    "LastBuyCostModel",
    "ProjectModel",
    "PurchaseOrderLineSnapshotModel",
    "PurchaseOrderModel",
    "QuoteVersionModel",
    "VariationModel",
    "WorkOrderLineSnapshotModel",
    "WorkOrderModel",
    "get_session",
    "init_db",
]
