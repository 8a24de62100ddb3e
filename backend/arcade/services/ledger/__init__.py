"""Points ledger services: score recording, minting, leaderboards, fan-out.

This package contains the domain logic imported by HTTP routes, socket
handlers and CLI commands, keeping transport concerns separated from the
ledger rules.
"""
