"""OracleNet identity verification service."""
