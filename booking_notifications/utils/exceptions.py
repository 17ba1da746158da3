class NotificationError(Exception):
    """Base class for notification delivery errors"""


class EncryptionError(NotificationError):
    pass


class DecryptionError(NotificationError):
    """Stored credentials could not be decrypted (wrong key, corrupt or tampered blob)"""


class UnsupportedChannelError(NotificationError):
    pass


class UnsupportedProviderError(NotificationError):
    pass


class CredentialValidationError(NotificationError):
    """Provider rejected the credentials; nothing was persisted"""

    def __init__(self, message, details=None):
        super().__init__(message)
        self.details = details or {}
