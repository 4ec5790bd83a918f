"""Bootstrap and tear down a jumpbox and director from editable artifacts."""

__version__ = "0.1.0"
