"""
Exceptions for LockBox
This is placed such that there is a general error catcher
"""


class LockBoxError(Exception):
    # general container for errors
    pass


class EmptyInputError(LockBoxError):
    # raised when a required field is missing on add/update/unlock
    pass


class WrongPasswordError(LockBoxError):
    # raised on a master hash mismatch during unlock
    pass


class VaultLockedError(LockBoxError):
    # raised when an operation needs an unlocked session
    pass


class InvalidIndexError(LockBoxError, IndexError):
    # raised when an item position does not exist
    pass


class UserCancelledError(LockBoxError):
    # raised by pickers when the user dismisses the dialog; never shown to the user
    pass


class StorageError(LockBoxError):
    # raised if storage fails in some way
    pass


class PermissionDeniedError(StorageError):
    # raised when the retained handle lacks current authorization
    pass


class IOFailureError(StorageError):
    # raised when the underlying read/write fails for any other reason
    pass


class BackendUnavailableError(StorageError):
    # raised when no persistence mechanism is usable
    pass


class CorruptDocumentError(StorageError):
    # raised when stored bytes are not a vault document
    pass


class VaultExistsError(StorageError):
    # raised when a location chosen for a new vault already holds data
    pass


class UnsavedChangesError(StorageError):
    # raised when a flush before lock or exit did not reach storage
    pass
