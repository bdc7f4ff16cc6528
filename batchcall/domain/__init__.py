"""Domain Layer: interfaces, value objects, errors and events.

Nothing in here performs I/O; infrastructure adapters implement the
interfaces and the core layer wires them together.
"""
