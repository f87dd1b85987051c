"""
Error taxonomy.

Every domain failure carries a machine-readable 'code' so the controller can
turn it into a tagged 'OperationResult' without inspecting message strings.
Exceptions that do not derive from 'ChatToolkitError' (store or transport
failures raised by an adapter) are reported as 'UPSTREAM_FAILURE'.
"""


class ChatToolkitError(Exception):
    code = "CHAT_TOOLKIT_ERROR"


class UnauthenticatedError(ChatToolkitError):
    """The caller has no verified identity. Never swallowed by an error policy."""

    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ChannelNotFoundError(ChatToolkitError):
    code = "CHANNEL_NOT_FOUND"

    def __init__(self, channel_id: str):
        super().__init__(f"Channel {channel_id} not found")
        self.channel_id = channel_id


class ChannelReadOnlyError(ChatToolkitError):
    code = "CHANNEL_READ_ONLY"

    def __init__(self, channel_id: str):
        super().__init__(f"Channel {channel_id} is read-only")
        self.channel_id = channel_id


class MembershipWriteError(ChatToolkitError):
    code = "MEMBERSHIP_WRITE_FAILED"


class DeliveryError(ChatToolkitError):
    code = "DELIVERY_FAILED"


UPSTREAM_FAILURE = "UPSTREAM_FAILURE"
