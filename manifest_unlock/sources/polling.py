from ..errors import DefinitiveNotFound, TransientError
from .base import NOT_FOUND, AcquisitionResult, AutomationSource, Deadline, FailurePolicy

KERNELOS_URL = 'https://kernelos.org/games/'
MANIFESTOR_URL = 'https://manifestor.cc/'

SET_INPUT_JS = """
([selector, value]) => {
    const el = document.querySelector(selector);
    if (!el) return false;
    el.value = value;
    el.dispatchEvent(new Event('input', { bubbles: true }));
    return true;
}
"""

READY_JS = """
([selector, requireVisible]) => {
    const btn = document.querySelector(selector);
    return !!btn && !btn.disabled && (!requireVisible || btn.offsetParent !== null);
}
"""

PAGE_TEXT_JS = "(marker) => document.body.innerText.includes(marker)"


class FormPollingSource(AutomationSource):
    """
    Types the appid into a form, optionally presses a fetch button, then polls
    until the download button becomes usable and clicks it.
    """

    name = 'form'
    label = 'Form'

    def __init__(self, cache_dir, surface_factory, landing_url: str, input_selector: str,
                 ready_selector: str, fetch_selector: str = None, require_visible: bool = False,
                 not_found_marker: str = None, name: str = None, label: str = None, **kwargs):
        if name:
            self.name = name
        if label:
            self.label = label
        super().__init__(cache_dir, surface_factory, **kwargs)
        self.landing_url = landing_url
        self.input_selector = input_selector
        self.ready_selector = ready_selector
        self.fetch_selector = fetch_selector
        self.require_visible = require_visible
        self.not_found_marker = not_found_marker

    def _drive(self, surface, appid: str, deadline: Deadline) -> AcquisitionResult:
        try:
            surface.goto(self.landing_url, timeout=deadline.remaining())
        except Exception as exc:
            raise TransientError(f'Failed to load {self.label}: {exc}') from exc
        self.log('Page loaded, starting automation...')
        self.settle.wait(self.settle.page_delay, deadline)

        if not surface.evaluate(SET_INPUT_JS, [self.input_selector, appid]):
            raise TransientError(f'Input field {self.input_selector} not found on {self.landing_url}')
        self.log('AppID entered')

        if self.fetch_selector:
            self.settle.wait(self.settle.step_delay, deadline)
            surface.click(self.fetch_selector)
            self.log('Clicked %s', self.fetch_selector)

        self.settle.wait(self.settle.page_delay / 2, deadline)
        if not self._wait_until_ready(surface, deadline):
            outcome = self.failure_policy.poll_exhausted
            if outcome == NOT_FOUND:
                self.log('Download button did not appear - game not available')
            raise self.failure_policy.error_for(outcome, f'No manifest found for App ID: {appid}')

        self.log('Download button ready, clicking...')
        return self._download(surface, lambda: surface.click(self.ready_selector), deadline)

    def _wait_until_ready(self, surface, deadline: Deadline) -> bool:
        attempts = self.settle.attempt_budget(self.timeout)
        for attempt in range(1, attempts + 1):
            deadline.check()
            try:
                if surface.evaluate(READY_JS, [self.ready_selector, self.require_visible]):
                    return True
                if self.not_found_marker and surface.evaluate(PAGE_TEXT_JS, self.not_found_marker):
                    raise DefinitiveNotFound(f'{self.label} reports: {self.not_found_marker}')
            except DefinitiveNotFound:
                raise
            except Exception as exc:
                self.logger.debug('[%s] Poll %d failed: %s', self.label, attempt, exc)
            if attempt < attempts:
                self.settle.wait(self.settle.poll_interval, deadline)
        return False


def kernelos_source(cache_dir, surface_factory, **kwargs) -> FormPollingSource:
    kwargs.setdefault('timeout', 60.0)
    return FormPollingSource(
        cache_dir,
        surface_factory,
        landing_url=KERNELOS_URL,
        input_selector='#gid',
        fetch_selector='#go',
        ready_selector='#dl',
        require_visible=True,
        not_found_marker='Not found or error.',
        name='kernelos',
        label='Kernelos',
        **kwargs,
    )


def manifestor_source(cache_dir, surface_factory, **kwargs) -> FormPollingSource:
    """Manifestor sits behind a Turnstile challenge, so its window is shown."""
    kwargs.setdefault('timeout', 120.0)
    kwargs.setdefault('headless', False)
    if kwargs.get('failure_policy') is None:
        kwargs['failure_policy'] = FailurePolicy(timeout=NOT_FOUND)
    return FormPollingSource(
        cache_dir,
        surface_factory,
        landing_url=MANIFESTOR_URL,
        input_selector='#appIdInput',
        ready_selector='#downloadButton',
        name='manifestor',
        label='Manifestor',
        **kwargs,
    )
