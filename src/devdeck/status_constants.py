"""
Status constants and mappings for DevDeck.

Centralizes process states, health states, pane/mode names and the glyphs
used to display them.
"""


# =============================================================================
# Process States
# =============================================================================

STATE_STOPPED = "stopped"
STATE_RUNNING = "running"
STATE_ERROR = "error"

ALL_STATES = [STATE_STOPPED, STATE_RUNNING, STATE_ERROR]


# =============================================================================
# Health States
# =============================================================================

HEALTH_UNCHECKED = "unchecked"
HEALTH_STARTING = "starting"
HEALTH_HEALTHY = "healthy"
HEALTH_UNHEALTHY = "unhealthy"

ALL_HEALTH_STATES = [HEALTH_UNCHECKED, HEALTH_STARTING, HEALTH_HEALTHY, HEALTH_UNHEALTHY]


# =============================================================================
# Probe Kinds
# =============================================================================

PROBE_TCP = "tcp"
PROBE_HTTP = "http"

PROBE_KINDS = (PROBE_TCP, PROBE_HTTP)


# =============================================================================
# Session Panes and Input Modes
# =============================================================================

FOCUS_LIST = "list"
FOCUS_LOG = "log"
FOCUS_SECONDARY = "secondary"

MODE_NONE = "none"
MODE_SEND_INPUT = "send_input"
MODE_SEARCH = "search"


# =============================================================================
# Display Mappings
# =============================================================================

STATE_EMOJIS = {
    STATE_RUNNING: "🟢",
    STATE_STOPPED: "🔴",
    STATE_ERROR: "🔴",
}

HEALTH_SYMBOLS = {
    HEALTH_UNCHECKED: ("", ""),
    HEALTH_STARTING: ("…", "yellow"),
    HEALTH_HEALTHY: ("✓", "green"),
    HEALTH_UNHEALTHY: ("✗", "bold red"),
}

PIN_MARKER = "📌"


def get_state_emoji(state: str) -> str:
    """Get the status glyph for a process state (green only while running)."""
    return STATE_EMOJIS.get(state, "🔴")


def get_health_symbol(health: str) -> tuple:
    """Get (symbol, style) for a health state. Empty symbol when unchecked."""
    return HEALTH_SYMBOLS.get(health, ("", ""))
