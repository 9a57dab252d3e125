"""Drive a headless Chromium through the render page and capture PDF or JPEG output.

A `RenderSession` owns exactly one browser and one page. Every blocking step runs
under its own timeout and the session is torn down from `__aexit__`, so success,
failure and cancellation all release the browser process.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any, TypeVar

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Request, Route, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from folio.config import RenderTimeouts, Settings
from folio.jobs.errors import TransientJobError
from folio.jobs.models import DocumentKind
from folio.rendering.payload import RenderPayload, encode_payload
from folio.rendering.print_client import INTERNAL_SECRET_HEADER
from folio.rendering.print_styles import DEV_OVERLAY_SELECTORS, FONTS_READY_JS, MARK_PDF_ROOT_JS, PREVIEW_SELECTOR, PRINT_CLEANUP_CSS, READY_SELECTOR, REMOVE_DEV_OVERLAYS_JS

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHROMIUM_ARGS = ("--no-sandbox", "--disable-gpu", "--disable-vulkan", "--use-gl=swiftshader", "--disable-dev-shm-usage", "--no-zygote")
A4_WIDTH = "8.27in"
A4_HEIGHT = "11.69in"
PREVIEW_JPEG_QUALITY = 80
PRINT_DATA_GLOBAL = "__PRINT_DATA__"

_RENDER_PATHS = {DocumentKind.RESUME: "print", DocumentKind.TEMPLATE: "print-template"}


class RenderState(StrEnum):
  IDLE = "idle"
  LAUNCH = "launch"
  CONNECT = "connect"
  INJECT = "inject_payload"
  NAVIGATE = "navigate"
  READY = "await_ready_signal"
  FONTS = "await_fonts"
  PRINT_MEDIA = "apply_print_media"
  CLEANUP = "cleanup_dom"
  CAPTURE = "capture"
  TEARDOWN = "teardown"
  CLOSED = "closed"


def build_injection_script(payload: RenderPayload) -> str:
  """Script that seeds the page global before any page code runs."""
  quoted = json.dumps(encode_payload(payload).decode("utf-8"))
  return f"window.{PRINT_DATA_GLOBAL} = JSON.parse({quoted});"


def render_target_url(frontend_base_url: str, kind: DocumentKind, target_id: int) -> str:
  """Render page URL; it carries only the document id."""
  return f"{frontend_base_url.rstrip('/')}/{_RENDER_PATHS[kind]}/{target_id}"


class RenderSession:
  """One browser engine plus one page, used for a single job."""

  def __init__(self, settings: Settings, *, timeouts: RenderTimeouts | None = None, playwright_factory: Callable[[], Any] = async_playwright) -> None:
    self._settings = settings
    self._timeouts = timeouts or settings.render_timeouts
    self._playwright_factory = playwright_factory
    self._playwright: Playwright | None = None
    self._browser: Browser | None = None
    self._context: BrowserContext | None = None
    self._page: Page | None = None
    self._driver_start: asyncio.Future[Playwright] | None = None
    self.state = RenderState.IDLE

  @property
  def page(self) -> Page:
    if self._page is None:
      raise RuntimeError("render session is not open")
    return self._page

  async def __aenter__(self) -> RenderSession:
    try:
      await self.open()
    except BaseException:
      await self.close()
      raise
    return self

  async def __aexit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: object) -> None:
    if exc is not None:
      logger.warning("Render session aborted state=%s error_type=%s", self.state, exc_type.__name__ if exc_type else None)
    await self.close()

  async def _step(self, state: RenderState, awaitable: Awaitable[T], timeout: float) -> T:
    """Run one state transition under a deadline, mapping engine failures to retryable job errors."""
    self.state = state
    try:
      return await asyncio.wait_for(awaitable, timeout=timeout)
    except (PlaywrightTimeoutError, TimeoutError) as exc:
      raise TransientJobError(f"render step {state} timed out after {timeout:.0f}s") from exc
    except PlaywrightError as exc:
      raise TransientJobError(f"render step {state} failed: {exc.message}") from exc

  async def open(self) -> None:
    """Start the driver, then launch a local Chromium or attach to a remote one."""
    timeout_ms = self._timeouts.connect * 1000
    self.state = RenderState.LAUNCH
    # The start task is kept so teardown can still stop a driver whose start outlived its deadline.
    self._driver_start = asyncio.ensure_future(self._playwright_factory().start())
    self._playwright = await self._step(RenderState.LAUNCH, asyncio.shield(self._driver_start), self._timeouts.connect)
    self._driver_start = None

    endpoint = self._settings.browser_ws_endpoint
    if endpoint:
      logger.info("Attaching to remote browser endpoint")
      self._browser = await self._step(RenderState.CONNECT, self._playwright.chromium.connect_over_cdp(endpoint, timeout=timeout_ms), self._timeouts.connect)
    else:
      self._browser = await self._step(RenderState.LAUNCH, self._playwright.chromium.launch(headless=True, args=list(CHROMIUM_ARGS), timeout=timeout_ms), self._timeouts.connect)

    self._context = await self._step(RenderState.CONNECT, self._browser.new_context(bypass_csp=True), self._timeouts.connect)
    self._page = await self._step(RenderState.CONNECT, self._context.new_page(), self._timeouts.connect)

  async def prepare(self, url: str, payload: RenderPayload) -> None:
    """Navigate to the render page with the payload pre-seeded and leave it print-ready."""
    page = self.page
    timeouts = self._timeouts

    await self._step(RenderState.INJECT, page.add_init_script(script=build_injection_script(payload)), timeouts.inject)
    secret = self._settings.internal_api_secret
    if secret:
      await self._step(RenderState.INJECT, page.route(f"{self._settings.internal_api_base_url}/**", _secret_header_handler(secret)), timeouts.inject)

    logger.info("Navigating to render page url=%s", url)
    await self._step(RenderState.NAVIGATE, page.goto(url, wait_until="commit", timeout=timeouts.navigate * 1000), timeouts.navigate)
    await self._step(RenderState.NAVIGATE, page.wait_for_load_state("load", timeout=timeouts.load * 1000), timeouts.load)

    logger.info("Waiting for render signal selector=%s", READY_SELECTOR)
    await self._step(RenderState.READY, page.wait_for_selector(READY_SELECTOR, state="attached", timeout=timeouts.ready * 1000), timeouts.ready)

    try:
      await self._step(RenderState.FONTS, page.evaluate(FONTS_READY_JS), timeouts.fonts)
    except TransientJobError as exc:
      logger.warning("Font readiness wait skipped: %s", exc)

    await self._step(RenderState.PRINT_MEDIA, page.emulate_media(media="print"), timeouts.inject)
    marked = await self._step(RenderState.PRINT_MEDIA, page.evaluate(MARK_PDF_ROOT_JS), timeouts.inject)
    if not marked:
      logger.warning("A4 canvas not found; printing the full page")

    await self._step(RenderState.CLEANUP, page.add_style_tag(content=PRINT_CLEANUP_CSS), timeouts.inject)
    removed = await self._step(RenderState.CLEANUP, page.evaluate(REMOVE_DEV_OVERLAYS_JS, list(DEV_OVERLAY_SELECTORS)), timeouts.inject)
    logger.debug("Removed %s overlay elements", removed)
    await self._step(RenderState.CLEANUP, page.wait_for_load_state("networkidle", timeout=timeouts.cleanup * 1000), timeouts.cleanup)

  async def pdf(self) -> bytes:
    """Export an A4 PDF with zero margins and background graphics."""
    margins = {"top": "0", "right": "0", "bottom": "0", "left": "0"}
    return await self._step(RenderState.CAPTURE, self.page.pdf(width=A4_WIDTH, height=A4_HEIGHT, margin=margins, print_background=True, prefer_css_page_size=True), self._timeouts.load)

  async def screenshot(self, quality: int = PREVIEW_JPEG_QUALITY) -> bytes:
    """JPEG of the A4 container, or of the full page when the container cannot be captured."""
    page = self.page
    self.state = RenderState.CAPTURE
    try:
      element = await page.wait_for_selector(PREVIEW_SELECTOR, timeout=self._timeouts.fonts * 1000)
      if element is not None:
        return await asyncio.wait_for(element.screenshot(type="jpeg", quality=quality), timeout=self._timeouts.load)
    except (PlaywrightError, TimeoutError) as exc:
      logger.info("Preview element capture failed, using full page: %s", exc)
    return await self._step(RenderState.CAPTURE, page.screenshot(type="jpeg", quality=quality, full_page=True), self._timeouts.load)

  async def close(self) -> None:
    """Release page, context, browser and driver; each close is bounded and failures are logged."""
    if self.state == RenderState.CLOSED:
      return
    reached = self.state
    self.state = RenderState.TEARDOWN
    limit = self._timeouts.teardown

    page, context, browser, playwright = self._page, self._context, self._browser, self._playwright
    self._page = self._context = self._browser = self._playwright = None

    try:
      if page is not None:
        await _bounded_close("page", page.close(), limit)
      if context is not None:
        await _bounded_close("context", context.close(), limit)
      if browser is not None:
        await _bounded_close("browser", browser.close(), limit)
    finally:
      if playwright is None:
        playwright = await self._pending_driver(limit)
      # Stopping the driver also kills any browser process it launched that is still alive.
      if playwright is not None:
        await _bounded_close("playwright driver", playwright.stop(), limit)
      self.state = RenderState.CLOSED
      logger.debug("Render session closed after state=%s", reached)

  async def _pending_driver(self, limit: float) -> Playwright | None:
    """Driver from a start that timed out in `open`, waited on for at most `limit` seconds."""
    start, self._driver_start = self._driver_start, None
    if start is None:
      return None
    if not start.done():
      try:
        await asyncio.wait_for(asyncio.shield(start), timeout=limit)
      except Exception:  # noqa: BLE001
        logger.warning("Waiting for the playwright driver to start failed", exc_info=True)
    if not start.done():
      logger.warning("Playwright driver did not finish starting; abandoning it")
      start.cancel()
      return None
    if start.cancelled() or start.exception() is not None:
      return None
    return start.result()


def _secret_header_handler(secret: str) -> Callable[[Route, Request], Awaitable[None]]:
  async def _attach_secret(route: Route, request: Request) -> None:
    headers = {**request.headers, INTERNAL_SECRET_HEADER.lower(): secret}
    await route.continue_(headers=headers)

  return _attach_secret


async def _bounded_close(name: str, awaitable: Awaitable[Any], timeout: float) -> None:
  try:
    await asyncio.wait_for(awaitable, timeout=timeout)
  except Exception:  # noqa: BLE001
    logger.warning("Closing %s failed or timed out", name, exc_info=True)


class BrowserRenderer:
  """Produces artifacts for a document by running one RenderSession per call."""

  def __init__(self, settings: Settings, *, session_factory: Callable[[], RenderSession] | None = None) -> None:
    self._settings = settings
    self._session_factory = session_factory or (lambda: RenderSession(settings))

  def target_url(self, kind: DocumentKind, target_id: int) -> str:
    return render_target_url(self._settings.frontend_base_url, kind, target_id)

  async def render_pdf(self, kind: DocumentKind, target_id: int, payload: RenderPayload) -> bytes:
    async with self._session_factory() as session:
      await session.prepare(self.target_url(kind, target_id), payload)
      return await session.pdf()

  async def render_preview(self, kind: DocumentKind, target_id: int, payload: RenderPayload, *, quality: int = PREVIEW_JPEG_QUALITY) -> bytes:
    async with self._session_factory() as session:
      await session.prepare(self.target_url(kind, target_id), payload)
      return await session.screenshot(quality=quality)
