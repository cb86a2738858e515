# trackmax/version.py
PROG_NAME = "trackmax"
__version__ = "1.0.0"
