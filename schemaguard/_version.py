# file generated by the release build, do not edit
version = "0.4.0"
__version__ = version
