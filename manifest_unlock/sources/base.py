import os
import time

from ..errors import AcquisitionTimeout, DefinitiveNotFound, ManifestUnlockError, TransientError
from ..ledger import normalize_appid
from ..log import get_logger

SUCCESS = 'success'
NOT_FOUND = 'not_found'
TRANSIENT = 'transient'


class AcquisitionResult:
    def __init__(self, kind: str, payload_path: str = None, payload_filename: str = None, reason: str = ''):
        self.kind = kind
        self.payload_path = payload_path
        self.payload_filename = payload_filename
        self.reason = reason

    @classmethod
    def success(cls, payload_path, payload_filename: str = None):
        payload_path = os.fspath(payload_path)
        return cls(SUCCESS, payload_path, payload_filename or os.path.basename(payload_path))

    @classmethod
    def not_found(cls, reason: str):
        return cls(NOT_FOUND, reason=reason)

    @classmethod
    def transient(cls, reason: str):
        return cls(TRANSIENT, reason=reason)

    @property
    def ok(self) -> bool:
        return self.kind == SUCCESS

    def __repr__(self):
        if self.ok:
            return f'AcquisitionResult(success, {self.payload_filename!r})'
        return f'AcquisitionResult({self.kind}, {self.reason!r})'


class SettlePolicy:
    """Fixed waits used while driving JS-rendered pages."""

    def __init__(self, page_delay=2.0, step_delay=0.5, poll_interval=0.5, max_attempts=60, sleep=None):
        self.page_delay = float(page_delay)
        self.step_delay = float(step_delay)
        self.poll_interval = float(poll_interval)
        self.max_attempts = int(max_attempts)
        self.sleep = sleep or time.sleep

    @classmethod
    def from_dict(cls, data: dict, **overrides):
        data = dict(data or {})
        data.update(overrides)
        return cls(
            page_delay=data.get('page_delay', 2.0),
            step_delay=data.get('step_delay', 0.5),
            poll_interval=data.get('poll_interval', 0.5),
            max_attempts=data.get('max_attempts', 60),
        )

    @classmethod
    def instant(cls, max_attempts=5):
        return cls(0, 0, 0, max_attempts, sleep=lambda _seconds: None)

    def wait(self, seconds: float, deadline=None) -> None:
        if deadline is not None:
            deadline.check()
            seconds = min(seconds, deadline.remaining())
        if seconds > 0:
            self.sleep(seconds)

    def attempt_budget(self, timeout: float) -> int:
        if self.poll_interval <= 0 or not timeout:
            return self.max_attempts
        return max(1, min(self.max_attempts, int(timeout / self.poll_interval)))


EMPTY_LISTING_CHOICES = ('retry_credentials', 'not_found')
OUTCOME_CHOICES = (NOT_FOUND, TRANSIENT)


class FailurePolicy:
    """
    How ambiguous page states are classified.

    empty_listing: what an upload page with no links means. ``retry_credentials``
    asks the credential provider for the narrower retry set and tries once more
    before giving up as not found; ``not_found`` gives up immediately.
    poll_exhausted / timeout: ``not_found`` or ``transient``.
    """

    def __init__(self, empty_listing='retry_credentials', poll_exhausted=NOT_FOUND, timeout=TRANSIENT):
        if empty_listing not in EMPTY_LISTING_CHOICES:
            raise ValueError(f'empty_listing must be one of {EMPTY_LISTING_CHOICES}')
        if poll_exhausted not in OUTCOME_CHOICES or timeout not in OUTCOME_CHOICES:
            raise ValueError(f'poll_exhausted and timeout must be one of {OUTCOME_CHOICES}')
        self.empty_listing = empty_listing
        self.poll_exhausted = poll_exhausted
        self.timeout = timeout

    @classmethod
    def from_dict(cls, data: dict, **overrides):
        data = dict(data or {})
        data.update(overrides)
        return cls(
            empty_listing=data.get('empty_listing', 'retry_credentials'),
            poll_exhausted=data.get('poll_exhausted', NOT_FOUND),
            timeout=data.get('timeout', TRANSIENT),
        )

    def error_for(self, outcome: str, message: str) -> ManifestUnlockError:
        if outcome == NOT_FOUND:
            return DefinitiveNotFound(message)
        return TransientError(message)


class Deadline:
    def __init__(self, seconds: float, clock=None):
        self.clock = clock or time.monotonic
        self.seconds = float(seconds)
        self.expires_at = self.clock() + self.seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self.clock())

    def remaining_ms(self) -> float:
        return self.remaining() * 1000

    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self) -> None:
        if self.expired():
            raise AcquisitionTimeout(f'Timeout: operation took longer than {self.seconds:.0f}s')


class Source:
    """
    One acquisition backend. Subclasses implement ``_acquire`` and may raise
    the pipeline errors; ``acquire`` turns everything into a result value.
    """

    name = 'source'
    label = 'Source'
    default_timeout = 60.0

    def __init__(self, cache_dir, timeout: float = None, failure_policy: FailurePolicy = None):
        self.cache_dir = os.fspath(cache_dir)
        self.timeout = float(timeout if timeout is not None else self.default_timeout)
        self.failure_policy = failure_policy or FailurePolicy()
        self.logger = get_logger(f'sources.{self.name}')

    def log(self, message: str, *args) -> None:
        self.logger.info(f'[{self.label}] {message}', *args)

    def acquire(self, appid, timeout: float = None) -> AcquisitionResult:
        try:
            appid = normalize_appid(appid)
        except ValueError:
            return AcquisitionResult.not_found(f'Invalid appid: {appid!r}')
        deadline = Deadline(timeout if timeout is not None else self.timeout)
        os.makedirs(self.cache_dir, exist_ok=True)
        self.log('Starting download for App ID: %s', appid)
        try:
            result = self._acquire(appid, deadline)
        except DefinitiveNotFound as exc:
            self.log('Not found: %s', exc)
            return AcquisitionResult.not_found(str(exc) or f'No manifest found for App ID: {appid}')
        except AcquisitionTimeout as exc:
            self.logger.warning('[%s] %s', self.label, exc)
            if self.failure_policy.timeout == NOT_FOUND:
                return AcquisitionResult.not_found(f'No manifest found for App ID: {appid}')
            return AcquisitionResult.transient(str(exc))
        except TransientError as exc:
            self.logger.warning('[%s] Transient failure: %s', self.label, exc)
            return AcquisitionResult.transient(str(exc))
        except Exception as exc:
            self.logger.exception('[%s] Unexpected error for App ID %s', self.label, appid)
            return AcquisitionResult.transient(f'{type(exc).__name__}: {exc}')
        if result.ok:
            self.log('Download completed: %s', result.payload_path)
        return result

    def _acquire(self, appid: str, deadline: Deadline) -> AcquisitionResult:
        raise NotImplementedError


class AutomationSurface:
    """
    A browser page driven by one adapter invocation. Implementations must
    make ``close`` safe to call more than once and never raise from it.
    """

    def goto(self, url: str, timeout: float = None) -> None:
        raise NotImplementedError

    def evaluate(self, script: str, arg=None):
        raise NotImplementedError

    def fill(self, selector: str, value: str) -> None:
        raise NotImplementedError

    def click(self, selector: str) -> None:
        raise NotImplementedError

    def add_cookies(self, cookies: list) -> None:
        raise NotImplementedError

    def expect_download(self, action, dest_dir: str, timeout: float = None):
        """Run ``action`` and wait for the download it triggers. Returns (path, filename)."""
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class AutomationSource(Source):
    headless = True

    def __init__(self, cache_dir, surface_factory, settle: SettlePolicy = None, timeout: float = None,
                 failure_policy: FailurePolicy = None, headless: bool = None):
        super().__init__(cache_dir, timeout=timeout, failure_policy=failure_policy)
        self.surface_factory = surface_factory
        self.settle = settle or SettlePolicy()
        if headless is not None:
            self.headless = headless

    def _acquire(self, appid: str, deadline: Deadline) -> AcquisitionResult:
        surface = self.surface_factory(headless=self.headless)
        try:
            return self._drive(surface, appid, deadline)
        finally:
            try:
                surface.close()
            except Exception as exc:
                self.logger.warning('[%s] Surface cleanup failed: %s', self.label, exc)

    def _drive(self, surface: AutomationSurface, appid: str, deadline: Deadline) -> AcquisitionResult:
        raise NotImplementedError

    def _download(self, surface: AutomationSurface, action, deadline: Deadline) -> AcquisitionResult:
        deadline.check()
        path, filename = surface.expect_download(action, self.cache_dir, timeout=deadline.remaining())
        self.log('Download started: %s', filename)
        return AcquisitionResult.success(path, filename)
