from .actions import ActionOutcome, ActionStatus
from .config import EngineConfig, HttpConfig, load_config, load_http_config
from .debounce import Debouncer
from .engine import (
    DataTableEngine,
    EngineMode,
    InMemoryRecordSource,
    PageResult,
    RecordSource,
    coerce_page_result,
    run_pipeline,
)
from .exceptions import (
    ActionError,
    ActionNotFoundError,
    ClientRequestError,
    ConfigError,
    ConfigurationError,
    DataSourceError,
    DataTableError,
    FilterValidationError,
    MalformedResponseError,
    PaginationError,
    ServerError,
    TransportError,
    ValidationIssue,
)
from .export import export_view_csv
from .filter_groups import (
    ConditionOperator,
    FilterCondition,
    FilterGroup,
    FilterGroupDecision,
    GroupOperator,
    accept_filter_group,
    apply_filter_group,
    evaluate_group,
    export_filter_group,
    import_filter_group,
    validate_filter_group,
)
from .filters import active_filter_count, apply_filters, clean_filter_value, matches_filters
from .http_client import HttpClient
from .layout import ColumnRoles, LayoutDecision, resolve_column_roles, resolve_layout, select_layout
from .models import (
    CardRole,
    Column,
    ConfirmSpec,
    DataType,
    FilterType,
    RangeValue,
    SelectOption,
    SortDirection,
    SortEntry,
    build_columns,
)
from .normalization import match, normalize, strip_accents
from .pagination import Pagination, paginate, visible_pages
from .presets import FilterPreset, save_preset, select_preset
from .remote import RemoteRecordSource, query_params
from .row_actions import RowAction, RowActionDispatcher
from .search import SearchMatcher, apply_search
from .selection import BulkAction, BulkActionManager, bulk_action_enabled
from .sorting import sort_records, toggle_sort
from .state import TableQuery, TableState, TableView, ViewStatus
from .ui_errors import UserFacingError, to_user_facing_error

__all__ = [
    "ActionError",
    "ActionNotFoundError",
    "ActionOutcome",
    "ActionStatus",
    "BulkAction",
    "BulkActionManager",
    "CardRole",
    "ClientRequestError",
    "Column",
    "ColumnRoles",
    "ConditionOperator",
    "ConfigError",
    "ConfigurationError",
    "ConfirmSpec",
    "DataSourceError",
    "DataTableEngine",
    "DataTableError",
    "DataType",
    "Debouncer",
    "EngineConfig",
    "EngineMode",
    "FilterCondition",
    "FilterGroup",
    "FilterGroupDecision",
    "FilterPreset",
    "FilterType",
    "FilterValidationError",
    "GroupOperator",
    "HttpClient",
    "HttpConfig",
    "InMemoryRecordSource",
    "LayoutDecision",
    "MalformedResponseError",
    "PageResult",
    "Pagination",
    "PaginationError",
    "RangeValue",
    "RecordSource",
    "RemoteRecordSource",
    "RowAction",
    "RowActionDispatcher",
    "SearchMatcher",
    "SelectOption",
    "ServerError",
    "SortDirection",
    "SortEntry",
    "TableQuery",
    "TableState",
    "TableView",
    "TransportError",
    "UserFacingError",
    "ValidationIssue",
    "ViewStatus",
    "accept_filter_group",
    "active_filter_count",
    "apply_filter_group",
    "apply_filters",
    "apply_search",
    "build_columns",
    "bulk_action_enabled",
    "clean_filter_value",
    "coerce_page_result",
    "evaluate_group",
    "export_filter_group",
    "export_view_csv",
    "import_filter_group",
    "load_config",
    "load_http_config",
    "match",
    "matches_filters",
    "normalize",
    "paginate",
    "query_params",
    "resolve_column_roles",
    "resolve_layout",
    "run_pipeline",
    "save_preset",
    "select_layout",
    "select_preset",
    "sort_records",
    "strip_accents",
    "to_user_facing_error",
    "toggle_sort",
    "validate_filter_group",
    "visible_pages",
]
