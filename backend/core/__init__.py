"""Core trading logic: indicators, signal fusion, risk and lifecycle rules.

This package contains pure business logic with no I/O dependencies
(no database or network access). Storage collaborators are
described by the protocols in ``core.protocols`` and implemented in ``app``.
"""
