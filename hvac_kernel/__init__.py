"""
HVAC Work Order Kernel

Lifecycle core for HVAC installation/removal work orders:
- Status stages derived on read, never stored
- Stored-equipment reservation ledger with compare-and-set reservation
- Prepurchase usage ledger with an exact quantity identity
- Installer settlement batch state machine and monthly billing views
"""

__version__ = "0.1.0"
