"""Scripts and styles evaluated inside the render page."""

READY_SELECTOR = "#pdf-render-ready"
PREVIEW_SELECTOR = "#a4-container"

FONTS_READY_JS = """() => {
  if (document && document.fonts && document.fonts.ready) {
    return Promise.race([
      document.fonts.ready.then(() => true),
      new Promise((resolve) => setTimeout(() => resolve(true), 3000))
    ]);
  }
  return true;
}"""

# Tag the A4 canvas so the print stylesheet can isolate it.
MARK_PDF_ROOT_JS = """() => {
  const normalize = s => (s || '').replace(/\\s+/g, '').toLowerCase();
  const all = Array.from(document.querySelectorAll('body *'));
  let target = all.find(el => normalize(getComputedStyle(el).aspectRatio) === '210/297') || null;
  if (!target) {
    target = all.find(el => {
      const w = parseFloat(getComputedStyle(el).width) || 0;
      return Math.abs(w - 794) < 1 || Math.abs(w - 900) < 1;
    }) || null;
  }
  if (target) target.id = 'pdf-root';
  return !!target;
}"""

DEV_OVERLAY_SELECTORS = (
  "#nextjs-devtools",
  "[data-nextjs-devtools]",
  "[data-next-devtools]",
  "#__next-build-watcher",
  "#__next-build-indicator",
  "#__next-dev-client",
  "#__next-prerender-indicator",
  "#__next-route-announcer",
  "#__next-dev-overlay",
  "nextjs-portal",
  "#nextjs-portal",
  'div[id^="__next_dev_"]',
)

# Removes dev overlays plus small fixed badges pinned to the bottom-left corner.
REMOVE_DEV_OVERLAYS_JS = """(selectors) => {
  let removed = 0;
  for (const s of selectors) {
    document.querySelectorAll(s).forEach(n => { n.remove(); removed += 1; });
  }
  for (const el of Array.from(document.querySelectorAll('body *'))) {
    if (getComputedStyle(el).position !== 'fixed') continue;
    const r = el.getBoundingClientRect();
    if (r.width <= 56 && r.height <= 56 && r.left <= 30 && (window.innerHeight - r.bottom) <= 30) {
      el.remove();
      removed += 1;
    }
  }
  return removed;
}"""

_HIDDEN_OVERLAYS = ",\n".join(f"  {selector}" for selector in DEV_OVERLAY_SELECTORS)

PRINT_CLEANUP_CSS = (
  _HIDDEN_OVERLAYS
  + """ {
  display: none !important;
  visibility: hidden !important;
  pointer-events: none !important;
}
html, body, #__next {
  margin: 0 !important;
  padding: 0 !important;
  background: white !important;
}
#__next .min-h-screen {
  min-height: auto !important;
  padding: 0 !important;
  margin: 0 !important;
}
#pdf-root,
[style*="aspect-ratio: 210 / 297"],
[style*="aspect-ratio:210 / 297"] {
  box-shadow: none !important;
  margin: 0 auto !important;
  background: white !important;
}
@media print {
  * {
    -webkit-print-color-adjust: exact !important;
    print-color-adjust: exact !important;
  }
  @page {
    size: A4;
    margin: 0;
  }
  body {
    overflow: hidden !important;
  }
  body * {
    visibility: hidden !important;
  }
  #pdf-root,
  [style*="aspect-ratio: 210 / 297"],
  [style*="aspect-ratio:210 / 297"] {
    visibility: visible !important;
    position: fixed !important;
    top: 0 !important;
    left: 50% !important;
    transform: translateX(-50%) !important;
    z-index: 999999 !important;
  }
  #pdf-root *,
  [style*="aspect-ratio: 210 / 297"] *,
  [style*="aspect-ratio:210 / 297"] * {
    visibility: visible !important;
  }
  .print-mask {
    visibility: visible !important;
    position: absolute !important;
    inset: 0 !important;
    border: 1.0cm solid white !important;
    box-sizing: border-box !important;
    z-index: 2147483647 !important;
    pointer-events: none !important;
    background: transparent !important;
  }
}
"""
)
