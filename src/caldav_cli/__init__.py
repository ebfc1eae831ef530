"""caldav-cli: provision CalDAV calendar accounts from the command line."""

__version__ = "0.1.0"
