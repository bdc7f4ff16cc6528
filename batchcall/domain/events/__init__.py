"""Domain Events emitted by the request client and the worker pool."""
