"""batchcall: bounded-concurrency JSON API batches with retries and backoff."""

__version__ = "1.0.0"
