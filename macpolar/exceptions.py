"""
Exception types raised by the macpolar analysis pipeline.

All of them are fatal for a run: the command line interface reports the
error and exits without retrying.
"""


class MacpolarError(Exception):
    """Base class for analysis errors."""


class DataLoadError(MacpolarError):
    """Input table is missing, unreadable or malformed."""


class StatisticalPreconditionError(MacpolarError):
    """Group structure does not support the requested ANOVA / post-hoc test."""


class ExportError(MacpolarError):
    """A figure or table could not be written."""
