"""jsonsock: typed JSON operations over one long-lived socket connection."""

__version__ = "0.1.0"
