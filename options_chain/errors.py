# errors.py
from typing import Iterable


class OptionsChainError(Exception):
    """Base class for errors reported back to the API caller."""

    status_code = 500


class MissingParameterError(OptionsChainError):
    status_code = 400

    def __init__(self, names: Iterable[str]):
        self.names = list(names)
        label = "parameter" if len(self.names) == 1 else "parameters"
        super().__init__(f"Missing required {label}: {', '.join(self.names)}")


class ConfigurationError(OptionsChainError):
    status_code = 500


class UpstreamError(OptionsChainError):
    """
    Non-success response from the market-data provider.

    :param status: HTTP status code, or None when the SDK did not expose one
    :param body: response body (or the best diagnostic message available)
    """

    status_code = 500

    def __init__(self, status, body: str, provider: str = "Polygon API"):
        self.status = status
        self.body = body
        self.provider = provider
        if status is None:
            message = f"{provider} error: {body}"
        else:
            message = f"{provider} error: {status} - {body}"
        super().__init__(message)
