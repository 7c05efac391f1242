from smiletail.pipelines.tail_profile import PROFILE_COLUMNS, tail_profile

__all__ = ["PROFILE_COLUMNS", "tail_profile"]
