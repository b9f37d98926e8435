"""
Infrastructure layer - external service integrations.

- storage: S3-compatible object storage holding the videos

These wrappers translate between vendor formats and the proxy's own
result and error types.
"""
