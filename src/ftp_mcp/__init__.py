"""MCP server exposing FTP upload, download and remote file management."""

__version__ = "0.1.0"
