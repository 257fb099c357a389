"""Authentication, request context and guards."""
