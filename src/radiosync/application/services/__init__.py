"""Application services: matching, ledger, stats and the ingestion pipeline."""
