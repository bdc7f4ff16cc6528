"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (HTTP, configuration files,
the console) by implementing the interfaces defined in the domain layer.
Also hosts the resilience engine: backoff, request client and worker pool.
"""
