"""
TaxVault - Source Package

Encrypted attachment storage and yearly tax export for a small business
finance tracker.

DESIGN PRINCIPLES:
1. Every stored attachment is encrypted at rest
2. Key material is injected, never read from globals in deep call paths
3. Old unencrypted uploads keep working
4. A missing receipt never blocks a tax export
5. Every file access is auditable
"""

__version__ = "1.0.0"
__author__ = "TaxVault Team"
