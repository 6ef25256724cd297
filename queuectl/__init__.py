"""
Persistent Job Queue

A multi-consumer job queue: clients enqueue shell command strings, independent
worker processes claim them atomically, execute them, and record success or
failure with exponential-backoff retries and a dead letter queue.
"""

__version__ = "1.0.0"
