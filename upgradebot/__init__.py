"""Fork, upgrade, push and open a pull request, with a pollable run ledger."""

__version__ = "0.3.0"
