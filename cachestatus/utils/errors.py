"""
Error types and helpers shared by the tracker and presentation layers.
"""


class UnsupportedCapabilityError(Exception):
    """A side-effecting call is not supported on the current platform.

    Raised by badge surfaces for per-tab variants they cannot honour.
    Callers fall back to the global variant.
    """

    def __init__(self, capability: str) -> None:
        super().__init__(f"Capability not supported: {capability}")
        self.capability = capability


def get_error_message(error: BaseException | object) -> str:
    """
    Safely extract an error message from an unknown error type.
    """
    if isinstance(error, Exception):
        message = str(error)
        return message or type(error).__name__
    return "Unknown error"
