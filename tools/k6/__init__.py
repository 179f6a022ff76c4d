"""k6 result processing, reporting and orchestration tools."""
