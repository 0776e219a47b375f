from prometheus_client import Counter, Histogram

# HTTP layer
HTTP_REQUESTS = Counter(
    "menucard_http_requests_total", "HTTP requests", ["path", "method", "status"]
)
HTTP_LATENCY = Histogram(
    "menucard_http_request_duration_seconds", "HTTP request duration (s)", ["path", "method"]
)

# Search
SEARCH_LATENCY = Histogram(
    "menucard_search_stage_seconds", "Search stage duration (s)", ["stage"]  # stage: embed|neighbors|lexical
)
SEARCH_RESULTS = Histogram(
    "menucard_search_results", "Results returned per query", ["mode"], buckets=[0, 1, 2, 4, 8, 16, 32]
)

# Indexing
INDEX_RUNS = Counter(
    "menucard_index_restaurant_total", "Per-restaurant re-index outcomes", ["status"]  # ok|failed
)
INDEXED_DOCUMENTS = Counter("menucard_indexed_documents_total", "Documents written to the vector store")

# Providers
PROVIDER_FAILURES = Counter(
    "menucard_provider_failures_total", "External provider failures", ["provider", "capability"]
)
CHAT_LATENCY = Histogram("menucard_chat_generation_seconds", "Chat model duration (s)")
