"""zapaddon - manifest and version feed tooling for ZAP add-ons."""

__version__ = "0.3.0"
