"""
Availability scheduling engine:
- Temporal normalization (normalizer.py)
- Overlap detection (overlap.py)
- Conflict resolution (conflicts.py)
- Slot lifecycle (lifecycle.py)
- Collection reconciliation (reconciler.py)
- Template materialization (materializer.py)
"""
