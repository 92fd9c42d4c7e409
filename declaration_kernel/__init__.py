"""
Declaration Kernel - waste-declaration compliance pipeline.

Detects weight-ticket activity that has not yet been reported to the
national waste registry (LMA), batches it into declarations, submits them
through the registry's session protocol and reconciles the deferred
results into durable state:
- Idempotent aggregation per (waste stream, period)
- Job -> declaration -> session state machine
- Polled, possibly partial session results
"""

__version__ = "0.1.0"
