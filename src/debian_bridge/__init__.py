"""debian-bridge: run Debian packages in containers with host integration."""

__version__ = "0.1.0"
