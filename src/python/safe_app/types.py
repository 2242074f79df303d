# safe_app/types.py

"""
Core enumerations and fixed widths shared by the safe_app library.
"""
from enum import Enum, IntEnum

# Byte widths of the fixed-size arrays exchanged with the native library.
XOR_NAME_LEN = 32
KEY_BYTES = 32
SIGN_SECRET_KEY_BYTES = 64
NONCE_BYTES = 24


class NativeErrorCode(IntEnum):
    """
    Error codes reported by the native library through its error callbacks.

    The values correspond directly to the codes emitted by the native side.
    """
    # Core errors
    ERR_ENCODE_DECODE_ERROR = -1
    ERR_ASYMMETRIC_DECIPHER_FAILURE = -2
    ERR_SYMMETRIC_DECIPHER_FAILURE = -3
    ERR_RECEIVED_UNEXPECTED_DATA = -4
    ERR_RECEIVED_UNEXPECTED_EVENT = -5
    ERR_VERSION_CACHE_MISS = -6
    ERR_ROOT_DIRECTORY_EXISTS = -7
    ERR_RANDOM_DATA_GENERATION_FAILURE = -8
    ERR_OPERATION_FORBIDDEN = -9
    ERR_ROUTING_ERROR = -10
    ERR_ROUTING_INTERFACE_ERROR = -11
    ERR_UNSUPPORTED_SALT_SIZE_FOR_PW_HASH = -12
    ERR_UNSUCCESSFUL_PW_HASH = -13
    ERR_OPERATION_ABORTED = -14
    ERR_MPID_MESSAGING_ERROR = -15
    ERR_SELF_ENCRYPTION = -16
    ERR_REQUEST_TIMEOUT = -17

    # Routing client errors
    ERR_ACCESS_DENIED = -100
    ERR_NO_SUCH_ACCOUNT = -101
    ERR_ACCOUNT_EXISTS = -102
    ERR_NO_SUCH_DATA = -103
    ERR_DATA_EXISTS = -104
    ERR_DATA_TOO_LARGE = -105
    ERR_NO_SUCH_ENTRY = -106
    ERR_ENTRY_EXISTS = -107
    ERR_TOO_MANY_ENTRIES = -108
    ERR_NO_SUCH_KEY = -109
    ERR_INVALID_OWNERS = -110
    ERR_INVALID_SUCCESSOR = -111
    ERR_INVALID_OPERATION = -112
    ERR_LOW_BALANCE = -113
    ERR_NETWORK_FULL = -114
    ERR_NETWORK_OTHER = -115

    # IPC errors
    ERR_AUTH_DENIED = -200
    ERR_CONTAINERS_DENIED = -201
    ERR_INVALID_MSG = -202
    ERR_ALREADY_AUTHORISED = -203
    ERR_UNKNOWN_APP = -204

    # NFS errors
    ERR_DIRECTORY_EXISTS = -300
    ERR_DESTINATION_AND_SOURCE_ARE_SAME = -301
    ERR_DIRECTORY_NOT_FOUND = -302
    ERR_FILE_EXISTS = -303
    ERR_FILE_DOES_NOT_MATCH = -304
    ERR_FILE_NOT_FOUND = -305
    ERR_INVALID_RANGE = -306
    ERR_INVALID_PARAMETER = -307

    # App errors
    ERR_NO_SUCH_CONTAINER = -1002
    ERR_INVALID_CIPHER_OPT_HANDLE = -1003
    ERR_INVALID_ENCRYPT_KEY_HANDLE = -1004
    ERR_INVALID_MDATA_INFO_HANDLE = -1005
    ERR_INVALID_MDATA_ENTRIES_HANDLE = -1006
    ERR_INVALID_MDATA_ENTRY_ACTIONS_HANDLE = -1007
    ERR_INVALID_MDATA_PERMISSIONS_HANDLE = -1008
    ERR_INVALID_MDATA_PERMISSION_SET_HANDLE = -1009
    ERR_INVALID_SELF_ENCRYPTOR_HANDLE = -1010
    ERR_INVALID_SIGN_KEY_HANDLE = -1011
    ERR_INVALID_SELF_ENCRYPTOR_READ_OFFSETS = -1012
    ERR_IO_ERROR = -1013

    ERR_UNEXPECTED = -2000


class ConnectionState(Enum):
    """Lifecycle of the single native connection owned by an `App`."""
    UNINITIALIZED = "Uninitialized"
    INITIALIZING = "Initializing"
    CONNECTED = "Connected"
    DISCONNECTED = "Disconnected"
    FREED = "Freed"


class NetworkState(IntEnum):
    """Network states as reported by the native disconnect notifier."""
    INIT = -1
    CONNECTED = 0
    DISCONNECTED = 1

    @property
    def label(self) -> str:
        return self.name.capitalize()


class CallStyle(Enum):
    """
    Callback convention of an asynchronous native function.

    PAIR:   `(..., token, on_success(token, *results), on_error(token, code, msg))`
    RESULT: `(..., token, on_result(token, FfiResult*, *results))`
    """
    PAIR = "pair"
    RESULT = "result"
