"""Custom exceptions for Congress Rebalancer.

This module defines the exception hierarchy for the application.
"""


class CongressRebalancerError(Exception):
    """Base exception for all Congress Rebalancer errors.

    All custom exceptions in the application should inherit from this class.
    """

    pass


class ConfigurationError(CongressRebalancerError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Tracked actor weight outside [0, 1]
        - Target allocation outside (0, 1]
        - Unknown scheduler trigger type
    """

    pass


class DataError(CongressRebalancerError):
    """Base exception for data layer errors.

    Parent class for all data-related exceptions.
    """

    pass


class DataProviderError(DataError):
    """Raised when a trade feed or quote provider cannot be read.

    Examples:
        - API rate limit exceeded
        - Network connection failed
        - Feed payload is not valid JSON
    """

    pass


class StorageError(DataError):
    """Raised when database operations fail.

    Examples:
        - Database file cannot be opened
        - SQL statement failed
        - Data integrity constraint violated
    """

    pass


class PortfolioError(CongressRebalancerError):
    """Base exception for portfolio layer errors."""

    pass


class RebalanceError(PortfolioError):
    """Raised when a rebalancing recommendation cannot be computed.

    Examples:
        - Ticker is not a tracked instrument
    """

    pass


class NotificationError(CongressRebalancerError):
    """Raised when a notification cannot be delivered.

    Dispatchers log these; they never abort a pipeline cycle.
    """

    pass
