from .consumption import (
    ChartPoint,
    ConsumptionEvent,
    ItemHistoryRequest,
    ItemHistoryResponse,
    ItemHistoryStats,
    MonthlyBucket,
    RegressionResult,
    TopConsumer,
)
from .issue_summary import (
    DailyIssueSummaryRow,
    IssueSummaryRequest,
    IssueSummaryResponse,
    IssueSummaryTotals,
)
from .projection import (
    CategorySpend,
    ProjectionParameters,
    ProjectionRequest,
    ProjectionResponse,
    ProjectionRow,
    ProjectionSummary,
    ProjectionTableOptions,
)
from .query_state import QueryState, QueryStatus
