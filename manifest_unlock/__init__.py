__version__ = '0.1.0'

from .config import Settings
from .ledger import InstalledFile, InstalledRecord, Ledger
from .service import ManifestService

__all__ = ['InstalledFile', 'InstalledRecord', 'Ledger', 'ManifestService', 'Settings', '__version__']
