"""
TracePlan exceptions.

Every error surfaced to callers derives from TracePlanError so the CLI
can tell "nothing to test" apart from "the model/service is misconfigured".
"""


class TracePlanError(Exception):
    """Base class for all TracePlan errors."""


class FormatError(TracePlanError):
    """Input is neither a valid HAR file nor a recognizable Postman collection."""


class NoEndpointsError(TracePlanError):
    """No testable endpoints were found, or the merged plan has no stories."""


class GenerationFailedError(TracePlanError):
    """Every batch failed to produce a parseable, non-empty model reply."""


class ConfigError(TracePlanError):
    """Provider or generator configuration is missing or invalid."""
