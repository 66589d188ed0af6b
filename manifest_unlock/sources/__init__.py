from .base import (
    NOT_FOUND,
    SUCCESS,
    TRANSIENT,
    AcquisitionResult,
    AutomationSource,
    AutomationSurface,
    Deadline,
    FailurePolicy,
    SettlePolicy,
    Source,
)
from .direct import DirectDownloadSource
from .polling import FormPollingSource, kernelos_source, manifestor_source
from .uploads import CredentialedUploadSource

__all__ = [
    'NOT_FOUND',
    'SUCCESS',
    'TRANSIENT',
    'AcquisitionResult',
    'AutomationSource',
    'AutomationSurface',
    'CredentialedUploadSource',
    'Deadline',
    'DirectDownloadSource',
    'FailurePolicy',
    'FormPollingSource',
    'SettlePolicy',
    'Source',
    'kernelos_source',
    'manifestor_source',
]
