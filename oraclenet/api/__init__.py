"""HTTP API routers for the OracleNet auth service."""
