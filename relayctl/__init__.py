"""relayctl — deployment lifecycle manager for the BadVPN relay daemons."""

__version__ = "0.3.0"
