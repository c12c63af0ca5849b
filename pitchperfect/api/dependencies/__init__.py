"""
FastAPI dependencies for request processing.

Dependencies hand endpoints the process-wide collaborators created at startup:
settings, the session manager, the retrieval adapter and the pipeline orchestrator.
"""
