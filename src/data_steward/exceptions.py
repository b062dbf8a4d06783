from data_steward.types.json_rpc import INTERNAL_ERROR, INVALID_REQUEST, SERVER_ERROR, ErrorData

BAD_REQUEST_MESSAGE = "Bad Request: invalid session ID or method."
INVALID_REQUEST_MESSAGE = "Invalid Request: body is not a JSON-RPC message or batch."
INTERNAL_SERVER_ERROR_MESSAGE = "Internal server error."


class RPCError(Exception):
    """Exception carrying a JSON-RPC error for the peer.

    Raised inside request handlers (or the HTTP dispatcher) when the failure
    should be reported to the client as an Error envelope rather than logged
    as an unexpected crash.

    Attributes:
        error: The ErrorData that will be placed in the error response
    """

    error: ErrorData

    def __init__(self, error: ErrorData):
        super().__init__(error.message)
        self.error = error

    @classmethod
    def internal(cls, message: str) -> "RPCError":
        return cls(ErrorData(code=INTERNAL_ERROR, message=message))


class BadRequestError(RPCError):
    """The request references an unknown session or is not a valid handshake."""

    def __init__(self, message: str = BAD_REQUEST_MESSAGE):
        super().__init__(ErrorData(code=SERVER_ERROR, message=message))


class InvalidRequestError(RPCError):
    """A POST that passed session routing carries a body that is not valid JSON-RPC."""

    def __init__(self, message: str = INVALID_REQUEST_MESSAGE):
        super().__init__(ErrorData(code=INVALID_REQUEST, message=message))


class ConflictError(RPCError):
    """A standalone event stream is already open for the session."""

    def __init__(self, message: str = "Conflict: only one event stream is allowed per session."):
        super().__init__(ErrorData(code=SERVER_ERROR, message=message))


class ChannelClosedError(Exception):
    """The session's channel has been closed; outbound sends are no longer possible."""

    def __init__(self, session_id: str):
        super().__init__(f"Channel for session {session_id} is closed")
        self.session_id = session_id


class DuplicateSessionError(Exception):
    """A session with the same id is already registered."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} is already registered")
        self.session_id = session_id


class CapacityError(Exception):
    """The session registry refused a new session because it is full."""

    def __init__(self, max_sessions: int):
        super().__init__(f"Session limit of {max_sessions} reached")
        self.max_sessions = max_sessions
