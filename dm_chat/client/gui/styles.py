"""Shared style constants for the GUI client."""

APPBAR_BG = "#fef01b"
PRIMARY_BG = "#fffbe7"
ACCENT = "#ffe100"
MY_BUBBLE = "#ffe100"
PEER_BUBBLE = "#ffffff"
TEXT_PRIMARY = "#3c1e1e"
TEXT_MUTED = "#7b6f6f"
UNREAD_BADGE = "#c63a46"
PADDING = 8
BORDER_RADIUS = 8
