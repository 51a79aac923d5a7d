"""Client-side core for the TaxEase filing wizard."""

__version__ = "0.1.0"
