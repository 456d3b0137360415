from sdw.types import ResultCode


class SdwError(Exception):
    """Base error raised inside the wrapper.

    Public operations convert it into an OperationResult carrying
    the same code and message.
    """

    code: ResultCode = ResultCode.EINVAL

    def __init__(self, message: str = '') -> None:
        super().__init__(message)
        self.message = message


class InitializationError(SdwError):
    """The bus connection could not be opened.
    """

    code = ResultCode.EINIT


class UnsupportedVersionError(SdwError):
    """The manager version is missing or below the supported minimum.
    """

    code = ResultCode.EVERSION


class InvalidArgumentError(SdwError):
    """Malformed input or a failed remote call.
    """

    code = ResultCode.EINVAL


class NotifySocketError(SdwError):
    """No notification socket is available to this process.
    """

    code = ResultCode.ENOTIFYSOCK


class JobTimeoutError(SdwError):
    """A synchronous wait passed its deadline with the job unresolved.
    """

    code = ResultCode.ETIMEOUT
