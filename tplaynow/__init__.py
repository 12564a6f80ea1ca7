"""TCP chat and framed-message networking toolkit with example client and server programs."""

__version__ = "0.1.0"