"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Object storage (R2/S3, or in-memory for development)
- webhook: Outbound HTTP calls to the workflow endpoint

These wrappers translate between external formats and our domain models.
"""
