import re
import time
from urllib.parse import quote

API_PREFIX = "_matrix/client/r0/"

_HTML_TAG = re.compile(r"<[^>]+>")

def build_api_url(homeserver_url: str, path: str) -> str:
    """
    Joins the homeserver base, the client API prefix and a resource path.
    A slash is only inserted when the homeserver URL doesn't already end in one.
    """
    separator = "" if homeserver_url.endswith("/") else "/"
    return f"{homeserver_url}{separator}{API_PREFIX}{path}"

def build_query(access_token: str, params: dict[str, str | int | None] | None = None) -> dict[str, str]:
    """
    The token always goes first. Parameters whose value is None or "" are
    dropped, so optional ones like `since` can be passed unconditionally.
    """
    query = {"access_token": access_token}
    for key, value in (params or {}).items():
        if value is None or value == "":
            continue
        query[key] = str(value)
    return query

def escape_room_id(room_id: str) -> str:
    # "!abc:example.org" -> "%21abc%3Aexample.org"
    return quote(room_id, safe="")

def make_txn_id(counter: int) -> str:
    """
    Epoch milliseconds plus a per-session counter. The counter keeps two sends
    issued within the same millisecond distinct.
    """
    return f"{int(time.time() * 1000)}__REQ{counter}"

def strip_html(html: str) -> str:
    return _HTML_TAG.sub("", html)
