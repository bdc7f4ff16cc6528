"""API Resilience Implementations.

Contains the backoff policy, the resilient request client (per-attempt
timeout plus retries) and the bounded worker pool that drives batches.
Bounded Context: API Resilience
"""
