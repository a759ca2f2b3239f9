"""Proxy module for the FTP relay.

This module handles the relayed FTP dialogue:
- SessionRelay: Scripted login/SYST/LIST exchange for one client
- Addressing: login@server, PORT and 227 parsing
- Bridge: Server-to-client data relay with idle timeout
- ProxyServer: Accept loop, one worker thread per session
- Exceptions: Session-fatal error types
"""
