"""Utility module for the FTP relay.

This module provides cross-cutting utilities:
- Logging: Configured logging with password redaction
- Validators: Input validation for hosts, ports, timeouts
- Threading: Background task runner for session workers
"""
