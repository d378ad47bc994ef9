"""
Composition classification and scoring engine.

Public entry points live in ``scoring.engine``: ``analyze``, ``invalidate``
and the ``ScoringEngine`` class.
"""
