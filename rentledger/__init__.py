"""RentLedger: rent payment tracking, Rent Score and shareable tenant reports."""

__version__ = "0.1.0"
