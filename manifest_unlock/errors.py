class ManifestUnlockError(Exception):
    """Base class for everything the pipeline raises on purpose."""


class DefinitiveNotFound(ManifestUnlockError):
    """The source has no content for the requested appid."""


class TransientError(ManifestUnlockError):
    """Network, automation or timing failure; another source may still work."""


class AcquisitionTimeout(TransientError):
    pass


class CorruptPayload(ManifestUnlockError):
    """Downloaded payload is not a readable archive."""


class NoRecognizedFiles(ManifestUnlockError):
    pass


class UnrecognizedFileType(ManifestUnlockError):
    pass


class LedgerIOError(ManifestUnlockError):
    pass
