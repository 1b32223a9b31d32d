from tutorsched.core.models.conflict_override_log import ConflictOverrideLog

__all__ = [
    "ConflictOverrideLog",
]
