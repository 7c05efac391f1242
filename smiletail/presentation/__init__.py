from smiletail.presentation.plot_tail import plot_tail_profile

__all__ = ["plot_tail_profile"]
