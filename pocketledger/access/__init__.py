"""Identity and access package."""

from pocketledger.access.gate import AccessGate

__all__ = ["AccessGate"]
