# ================================================================================
# Page Scripts
# ================================================================================
#
# JavaScript snippets injected through Driver.execute_script().
#
# Every script is an arrow function that receives a single argument array,
# so the same text works with Playwright's page.evaluate(script, [args]).
# Element references are passed inside that array.
#
# ================================================================================

SCROLL_INTO_VIEW = (
    "([el]) => el.scrollIntoView({behavior: 'auto', block: 'center'})"
)

HIDE_OVERLAYS = (
    "([el, selectors]) => {"
    " el.scrollIntoView(true);"
    " document.querySelectorAll(selectors.join(','))"
    "   .forEach(o => { if (!o.contains(el)) o.style.display = 'none'; });"
    " return true;"
    "}"
)

JS_CLICK = "([el]) => el.click()"

DISPATCH_CLICK = (
    "([el]) => el.dispatchEvent("
    "new MouseEvent('click', {bubbles: true, cancelable: true, view: window}))"
)

SET_VALUE = (
    "([el, value]) => {"
    " el.value = value;"
    " el.dispatchEvent(new Event('input', {bubbles: true}));"
    " el.dispatchEvent(new Event('change', {bubbles: true}));"
    "}"
)

GET_VALUE = "([el]) => el.value"

IS_VISIBLE = (
    "([el]) => !!(el.offsetWidth || el.offsetHeight || el.getClientRects().length)"
    " && window.getComputedStyle(el).visibility !== 'hidden'"
    " && window.getComputedStyle(el).display !== 'none'"
)

IS_ENABLED = "([el]) => !el.disabled && el.getAttribute('aria-disabled') !== 'true'"

SUBMIT = (
    "([el]) => {"
    " const form = el.form || el.closest('form');"
    " if (!form) throw new Error('Element is not inside a form');"
    " if (form.requestSubmit) form.requestSubmit(); else form.submit();"
    "}"
)

# --------------------------------------------------------------------------------
# Context queries (retry policy selection)
# --------------------------------------------------------------------------------

RESPONSE_LATENCY = (
    "() => (window.performance && window.performance.timing)"
    " ? window.performance.timing.responseEnd - window.performance.timing.requestStart"
    " : null"
)

SCRIPT_ERRORS = "() => window.jsErrors || []"

HEAP_USAGE = (
    "() => (window.performance && window.performance.memory)"
    " ? window.performance.memory.usedJSHeapSize : 0"
)

# --------------------------------------------------------------------------------
# Monitoring
# --------------------------------------------------------------------------------

INSTALL_NETWORK_OBSERVER = (
    "() => {"
    " if (!window.PerformanceObserver) return false;"
    " window.__resilienceNetworkEntries = window.__resilienceNetworkEntries || [];"
    " if (!window.__resilienceNetworkObserver) {"
    "   window.__resilienceNetworkObserver = new PerformanceObserver((list) => {"
    "     for (const e of list.getEntries()) window.__resilienceNetworkEntries.push(e.toJSON());"
    "   });"
    "   window.__resilienceNetworkObserver.observe({entryTypes: ['resource', 'navigation']});"
    " }"
    " return true;"
    "}"
)

READ_NETWORK_ENTRIES = "() => window.__resilienceNetworkEntries || []"

CLEAR_NETWORK_ENTRIES = "() => { window.__resilienceNetworkEntries = []; }"

PAGE_TIMINGS = (
    "() => {"
    " if (!window.performance || !window.performance.getEntriesByType) return null;"
    " const nav = window.performance.getEntriesByType('navigation')[0];"
    " return {"
    "   navigationTiming: nav ? nav.toJSON() : null,"
    "   resourceTiming: window.performance.getEntriesByType('resource').map(e => e.toJSON()),"
    " };"
    "}"
)
