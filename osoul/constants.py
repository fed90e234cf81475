# osoul/constants.py
from enum import Enum

# ==============================
# Users
# ==============================
class Role(str, Enum):
    ADMIN     = "admin"
    MANAGER   = "manager"
    COLLECTOR = "collector"
    VIEWER    = "viewer"

ROLES = {r.value for r in Role}

# ==============================
# Collection cases
# ==============================
class CaseStatus(str, Enum):
    NEW         = "new"
    IN_PROGRESS = "in_progress"
    RESOLVED    = "resolved"
    CLOSED      = "closed"

# Status names coming from the frontend → stored statuses
CASE_STATUS_ALIASES = {
    "Active": [CaseStatus.NEW.value, CaseStatus.IN_PROGRESS.value],
    "Closed": [CaseStatus.RESOLVED.value, CaseStatus.CLOSED.value],
}

ACTIVE_CASE_STATUSES = CASE_STATUS_ALIASES["Active"]

UNASSIGNED_COLLECTOR = "Unassigned"
UNKNOWN_COLLECTOR = "Unknown"

# ==============================
# Transactions / accounts
# ==============================
TRANSACTION_COMPLETED = "completed"
ACCOUNT_DELINQUENT = "Delinquent"

# DPD above this is non-performing (NPL/NPF)
NPL_DPD_THRESHOLD = 90

# Aging buckets in display order: (label, min dpd, max dpd inclusive / None = open)
AGING_BUCKETS = [
    ("Current", 0, 0),
    ("1-30", 1, 30),
    ("31-60", 31, 60),
    ("61-90", 61, 90),
    ("91-180", 91, 180),
    ("180+", 181, None),
]

# ==============================
# Periods
# ==============================
class Period(str, Enum):
    DAILY   = "daily"
    WEEKLY  = "weekly"
    MONTHLY = "monthly"

# Default look-back windows for dashboard trends
TREND_DEFAULT_WINDOWS = {
    Period.DAILY: {"days": 30},
    Period.WEEKLY: {"weeks": 12},
    Period.MONTHLY: {"months": 12},
}

# ==============================
# Listings
# ==============================
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# ==============================
# Passwords
# ==============================
BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
# Checked in this order by the legacy policy
LEGACY_PASSWORD_FIELDS = ("password_hash", "legacy_password")

# ==============================
# Dashboards
# ==============================
WIDGET_MAX_WIDTH = 12
WIDGET_MAX_HEIGHT = 10

NOT_IMPLEMENTED_DATA_SOURCE = "Data source not implemented"

# Starter set for every new dashboard
DEFAULT_WIDGETS = [
    {
        "widget_type": "summary_card",
        "widget_title": "Total Collections",
        "position_x": 0, "position_y": 0, "width": 3, "height": 2,
        "config": {"metric": "total_collected", "period": "month"},
    },
    {
        "widget_type": "summary_card",
        "widget_title": "Transaction Count",
        "position_x": 3, "position_y": 0, "width": 3, "height": 2,
        "config": {"metric": "transaction_count", "period": "month"},
    },
    {
        "widget_type": "summary_card",
        "widget_title": "Average Transaction",
        "position_x": 6, "position_y": 0, "width": 3, "height": 2,
        "config": {"metric": "avg_transaction", "period": "month"},
    },
    {
        "widget_type": "summary_card",
        "widget_title": "Unique Customers",
        "position_x": 9, "position_y": 0, "width": 3, "height": 2,
        "config": {"metric": "unique_customers", "period": "month"},
    },
    {
        "widget_type": "line_chart",
        "widget_title": "Collection Trends",
        "position_x": 0, "position_y": 2, "width": 6, "height": 4,
        "config": {
            "chartType": "line",
            "dataSource": "performance_trends",
            "period": "daily",
            "metric": "total_collected",
        },
    },
    {
        "widget_type": "bar_chart",
        "widget_title": "Branch Comparison",
        "position_x": 6, "position_y": 2, "width": 6, "height": 4,
        "config": {
            "chartType": "bar",
            "dataSource": "branch_comparison",
            "metric": "total_collected",
            "limit": 10,
        },
    },
]

# ==============================
# Exports
# ==============================
EXPORT_REPORT_TYPES = {"transactions", "summary", "comparison"}
EXPORT_FORMATS = {"csv", "json", "xlsx"}
