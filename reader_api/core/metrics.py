"""
Prometheus metrics for the data layer (monitoring & observability).
Exposed by the app at /metrics through prometheus_client's ASGI app.
"""

from prometheus_client import Counter, Histogram

DB_QUERIES = Counter(
    "db_queries_total",
    "Queries run through the query executor",
    ["outcome"],
)

DB_QUERY_RETRIES = Counter(
    "db_query_retries_total",
    "Query attempts that failed with a transient error and were retried",
)

DB_QUERY_DURATION = Histogram(
    "db_query_duration_seconds",
    "Wall time of a single query attempt",
)

DB_TRANSACTIONS = Counter(
    "db_transactions_total",
    "Transactions by outcome",
    ["outcome"],
)
