"""panoview: keeps a grouped panorama of browser tabs in sync with the host."""

__version__ = "0.1.0"
