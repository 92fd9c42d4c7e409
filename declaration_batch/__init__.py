"""
declaration_batch -- periodic driver for the waste-declaration pipeline.

Evaluates cron expressions per kernel entry point (late-declaration trigger,
monthly job creation, job draining, session resolution) and runs each in
its own transaction on a polling thread.

Architecture:
    declaration_batch/ is a top-level package.  Nothing in
    declaration_kernel imports from declaration_batch.
"""
