__version__ = "1.0.0"
__schema_version__ = "1.0"
