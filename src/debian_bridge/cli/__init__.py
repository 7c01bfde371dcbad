"""debian-bridge command line interface."""
