"""Measurement helpers that sit beside the trace core.

:mod:`confidence` keeps the bounded best-of-N set of confident rate readings
used by the pulse capture flow. It has no Qt or I/O dependencies.
"""
