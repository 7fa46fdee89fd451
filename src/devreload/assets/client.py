"""Browser-side reload agent and HTML injection."""

CLIENT_SCRIPT_PATH = "/__devreload/client.js"

SCRIPT_TAG = f'<script src="{CLIENT_SCRIPT_PATH}" data-devreload></script>'

# Reloads on any frame; reconnects with exponential backoff and reloads
# once the server is reachable again, since a rebuild may have happened
# while it was away.
_CLIENT_TEMPLATE = """\
(function() {
  var port = __PORT__;
  var delay = 250;
  var maxDelay = 5000;
  var seen = false;
  function connect() {
    var proto = location.protocol === 'https:' ? 'wss:' : 'ws:';
    var ws = new WebSocket(proto + '//' + location.hostname + ':' + port + '/ws');
    ws.onopen = function() {
      if (seen) { location.reload(); return; }
      seen = true;
      delay = 250;
    };
    ws.onmessage = function() { location.reload(); };
    ws.onclose = function() {
      setTimeout(connect, delay);
      delay = Math.min(delay * 2, maxDelay);
    };
  }
  connect();
})();
"""


def render_client_script(notify_port: int) -> str:
    """Render the reload agent for a notification port.

    Args:
        notify_port: Port the notification server listens on.

    Returns:
        JavaScript source.
    """
    return _CLIENT_TEMPLATE.replace("__PORT__", str(int(notify_port)))


def inject_client(html: bytes) -> bytes:
    """Insert the reload agent script tag into an HTML document.

    Goes just before ``</body>``, else before ``</html>``, else appended.

    Args:
        html: Original document bytes.

    Returns:
        Document bytes with the script tag.
    """
    tag = SCRIPT_TAG.encode()
    lowered = html.lower()
    for marker in (b"</body>", b"</html>"):
        index = lowered.rfind(marker)
        if index != -1:
            return html[:index] + tag + html[index:]
    return html + tag
