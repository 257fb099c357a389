"""Application services used by the API handlers."""
