from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from ..errors import PortalError
from ..models.config_models import PortalConfig

"""SofiaPlus portal session (Playwright, sync API).

One browser page is shared by every download of a run, so the client must be
used sequentially. Typical use::

    with SofiaPlusClient(cfg.portal, Path(cfg.report_directory)) as portal:
        portal.login()
        path = portal.download_report("2758493")
"""

__all__ = [
    "SofiaPlusClient",
    "build_report_filename",
]

logger = logging.getLogger(__name__)

LOGIN_FRAME = "#registradoBox1"
ROLE_SELECT = "#seleccionRol\\:roles"
SIDE_MENU = "#side-menu, #menu_lateral"
CONTENT_FRAME = "iframe#contenido"
SEARCH_MODAL_FRAME = "iframe#modalDialogContentviewDialog2"
FICHE_CODE_INPUT = 'input[id$="codigoFichaITX"]'
FICHE_RESULT_ROWS = 'table[id$="dtFichas"] tbody tr'
REPORT_FORM_READY = "input#frmForma1\\:btnConsultar"

MENU_PATH = (
    ("Ejecución de la Formación", False),
    ("Administrar Ruta de Aprendizaje", False),
    ("Reportes ", True),
)
REPORT_LINK = "Reporte de Juicios de Evaluación"


def build_report_filename(suggested: str, fiche_code: str) -> str:
    """Append the ficha code to the portal's suggested name, keeping the suffix.

    >>> build_report_filename("ReporteJuicios.xls", "2758493")
    'ReporteJuicios 2758493.xls'
    """
    p = Path(suggested)
    return f"{p.stem} {fiche_code}{p.suffix}"


class SofiaPlusClient:
    def __init__(self, config: PortalConfig, report_directory: Path) -> None:
        self.config = config
        self.report_directory = report_directory
        self._playwright: Any = None
        self._browser: Any = None
        self._page: Any = None

    @property
    def logged_in(self) -> bool:
        return self._page is not None

    def login(self) -> None:
        """Open the browser, authenticate and navigate to the report page."""
        if not self.config.user or not self.config.password:
            raise PortalError("portal credentials not configured (SOFIA_USER / SOFIA_PASS)")
        timeout = self.config.timeout_ms
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.config.headless, slow_mo=self.config.slow_mo_ms
            )
            page = self._browser.new_page()
            page.set_default_timeout(timeout)
            page.goto(self.config.url, wait_until="domcontentloaded")

            login_handle = page.wait_for_selector(LOGIN_FRAME, timeout=timeout)
            login_frame = login_handle.content_frame() if login_handle else None
            if login_frame is None:
                raise PortalError(
                    f"login iframe {LOGIN_FRAME} not found; the portal page did not load"
                )
            login_frame.wait_for_selector("input#username")
            login_frame.get_by_role("textbox", name="Número de Documento").fill(self.config.user)
            login_frame.get_by_role("textbox", name="Contraseña").fill(self.config.password)
            login_frame.get_by_role("button", name="Ingresar").click()

            page.wait_for_selector(ROLE_SELECT, timeout=timeout)
            page.select_option(ROLE_SELECT, label=self.config.role)

            page.wait_for_selector(SIDE_MENU, timeout=timeout)
            for name, exact in MENU_PATH:
                page.get_by_role("link", name=name, exact=exact).click()
            page.get_by_role("link", name=REPORT_LINK, exact=True).first.click()
            page.wait_for_selector(CONTENT_FRAME, timeout=timeout)
        except PlaywrightError as e:
            self.close()
            raise PortalError(f"portal login failed: {e}") from e
        except PortalError:
            self.close()
            raise
        self._page = page
        logger.info("portal session opened (role=%s)", self.config.role)

    def _content_frame(self) -> Any:
        handle = self._page.wait_for_selector(CONTENT_FRAME, timeout=self.config.timeout_ms)
        return handle.content_frame()

    def download_report(self, fiche_code: str) -> Path:
        """Download the evaluation-judgement report of one ficha.

        Returns:
            Path of the saved file inside ``report_directory``.

        Raises:
            PortalError: not logged in, or any navigation/download failure.
        """
        if self._page is None:
            raise PortalError("the SofiaPlus client is not logged in")
        timeout = self.config.timeout_ms
        try:
            frame = self._content_frame()
            frame.get_by_role("link", name="Buscar Ficha de Caracterización").click()

            modal = frame.wait_for_selector(SEARCH_MODAL_FRAME, timeout=timeout).content_frame()
            modal.wait_for_selector(FICHE_CODE_INPUT, timeout=timeout)
            modal.fill(FICHE_CODE_INPUT, str(fiche_code))
            modal.get_by_role("button", name="Consultar").click()
            modal.wait_for_selector(FICHE_RESULT_ROWS)
            modal.locator(FICHE_RESULT_ROWS).first.locator("button, a").first.click()

            try:
                frame.wait_for_load_state("domcontentloaded")
            except PlaywrightError:
                # the content iframe is replaced after selecting the ficha
                frame = self._content_frame()
            frame.wait_for_selector(REPORT_FORM_READY)

            with self._page.expect_download() as download_info:
                frame.get_by_role("button", name="Generar Reporte").click()
            download = download_info.value

            name = build_report_filename(download.suggested_filename, str(fiche_code))
            self.report_directory.mkdir(parents=True, exist_ok=True)
            target = self.report_directory / name
            download.save_as(target)
        except PlaywrightError as e:
            raise PortalError(
                f"report download failed for ficha {fiche_code}: {e}"
            ) from e
        logger.info("report saved for ficha %s: %s", fiche_code, target.name)
        return target

    def close(self) -> None:
        try:
            if self._browser is not None:
                self._browser.close()
        finally:
            if self._playwright is not None:
                self._playwright.stop()
            self._browser = None
            self._playwright = None
            self._page = None

    def __enter__(self) -> SofiaPlusClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
