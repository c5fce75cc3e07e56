"""Exception hierarchy for the reward flow tracker."""


class TrackerError(Exception):
    """Base error for tracker failures."""
    pass


class SubscanError(TrackerError):
    """A Subscan request could not produce a usable page."""
    pass


class SubscanAPIError(SubscanError):
    """Subscan answered with a non-zero error code."""

    def __init__(self, endpoint: str, code: int, message: str = ""):
        self.endpoint = endpoint
        self.code = code
        self.message = message
        super().__init__(f"Subscan API error on {endpoint}: code={code} {message}".rstrip())


class SubscanTransportError(SubscanError):
    """Transport failure (timeout, connection, HTTP status) after all retries."""
    pass


class RegistryLoadError(TrackerError):
    """The exchange address registry could not be loaded."""
    pass


class CohortDiscoveryError(TrackerError):
    """Top reward receiver discovery failed."""
    pass


class AddressImportError(TrackerError):
    """An address list could not be parsed."""
    pass
