"""
Exception hierarchy for batteryhub.

Two tiers matter to the poller:
- ReadError (and DecodeError) are per-battery and recoverable.
- TransportError (and ReopenError) concern the shared link; a ReopenError
  means the link could not be restored and polling must stop.
"""


class BatteryHubError(Exception):
    """Base class for all batteryhub errors."""


class ConfigError(BatteryHubError):
    """Invalid configuration or an unsupported protocol/battery selection."""


class TransportError(BatteryHubError):
    """The shared port could not be opened or used."""


class ReopenError(TransportError):
    """The port could not be reopened after exhausting the backoff policy."""


class ReadError(BatteryHubError):
    """A read from a single battery failed."""


class DecodeError(ReadError):
    """A battery answered but the register block could not be decoded."""


class PollingFailed(BatteryHubError):
    """Raised at the end of a run that recorded one or more per-battery failures."""

    def __init__(self, outcome):
        self.outcome = outcome
        super().__init__(outcome.error_message())
