"""
Preview page template.

The page shows a placeholder until the sandbox script loads. The script
tag carries a per-render nonce and the page's Content-Security-Policy
only allows scripts with that nonce.
"""

from __future__ import annotations

import secrets
import string

_NONCE_ALPHABET = string.ascii_letters + string.digits
_NONCE_LENGTH = 32

PREVIEW_CSS = """
body {
    padding: 0px;
    margin: 8px;
    background: white;
    color: black;
    overflow-x: scroll !important;
    overflow-y: scroll !important;
    max-width: 800px;
}
"""


def get_nonce() -> str:
    """32 random alphanumeric characters."""
    return "".join(secrets.choice(_NONCE_ALPHABET) for _ in range(_NONCE_LENGTH))


def render_webview_html(
    title: str,
    script_url: str,
    socket_path: str,
    nonce: str | None = None,
) -> str:
    """
    Render the preview page for one target.

    Args:
        title: Page title
        script_url: URL of the sandbox script
        socket_path: WebSocket path the sandbox script connects back on
        nonce: Script nonce; a fresh one is generated when omitted

    Returns:
        Complete HTML string
    """
    nonce = nonce or get_nonce()
    csp = f"default-src 'none'; style-src 'unsafe-inline'; script-src 'nonce-{nonce}'; connect-src 'self' ws: wss: http: https:;"

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta http-equiv="Content-Security-Policy" content="{_escape_html(csp)}">
<title>{_escape_html(title)}</title>
<style>
{PREVIEW_CSS}
</style>
</head>
<body>
<div id="placeholder">
    ...loading...
</div>
<script nonce="{nonce}" src="{_escape_html(script_url)}" data-socket="{_escape_html(socket_path)}"></script>
</body>
</html>
"""


def _escape_html(text: str) -> str:
    """HTML-escape text for safe embedding."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")
