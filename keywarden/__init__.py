"""
Keywarden - Declarative APT trust-store key management.

Keywarden provides:
- Parsing of `apt-key` colon listings into structured key records
- Reconciliation of declared keys against the trust store
- Fingerprint verification of inline and sourced key material
- An audit log of every reconciliation outcome
"""

__version__ = "0.4.7"
__author__ = "Tommy Mancino"
