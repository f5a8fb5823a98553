"""gravedigger: a reversible rm that moves files into a graveyard."""

__version__ = "0.1.0"
