"""
API server package: HTTP interface over the analysis facade.

Exposes the analysis bundle, exports and query helpers to clients; every
request recomputes from the configured data source.
"""
