"""REST API in front of the extension generator."""
