import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlsplit

import pytest

from dilithium.influx import (
    InfluxError,
    InfluxSettings,
    clean,
    drop_series,
    parse_series,
    show_series,
)

SHOW_RESPONSE = {
    "results": [
        {
            "statement_id": 0,
            "series": [
                {
                    "columns": ["key"],
                    "values": [
                        ["tx_bytes,peer=a,type=westworld31"],
                        ["tx_bytes,peer=b,type=westworld31"],
                        ["rx_bytes,peer=a,type=westworld31"],
                    ],
                }
            ],
        }
    ]
}


@pytest.fixture
def server():
    state = {"requests": [], "post_status": 200, "body": SHOW_RESPONSE}

    class Handler(BaseHTTPRequestHandler):
        def log_message(self, *args):
            pass

        def do_GET(self):
            state["requests"].append(("GET", self.path))
            body = json.dumps(state["body"]).encode()
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def do_POST(self):
            length = int(self.headers.get("Content-Length", 0))
            self.rfile.read(length)
            state["requests"].append(("POST", self.path))
            self.send_response(state["post_status"])
            self.send_header("Content-Length", "0")
            self.end_headers()

    httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    host, port = httpd.server_address[:2]
    state["settings"] = InfluxSettings(url=f"http://{host}:{port}")
    yield state
    httpd.shutdown()
    httpd.server_close()


def _query(path):
    return parse_qs(urlsplit(path).query)


def test_parse_series_dedupes_measurements():
    assert parse_series(SHOW_RESPONSE) == ["tx_bytes", "rx_bytes"]


def test_parse_series_tolerates_missing_sections():
    results = {"results": [{"statement_id": 0}, {"series": [{"columns": ["key"]}]}]}
    assert parse_series(results) == []


def test_parse_series_requires_results():
    with pytest.raises(KeyError):
        parse_series({})


def test_default_settings():
    settings = InfluxSettings()
    assert settings.url == "http://localhost:8086"
    assert settings.database == "dilithium"


def test_show_series_queries_database(server):
    assert sorted(show_series(server["settings"])) == ["rx_bytes", "tx_bytes"]
    method, path = server["requests"][0]
    assert method == "GET"
    assert "q=SHOW+SERIES" in path
    assert _query(path) == {"db": ["dilithium"], "q": ["SHOW SERIES"]}


def test_drop_series_posts_query(server):
    drop_series(server["settings"], "tx_bytes")
    method, path = server["requests"][0]
    assert method == "POST"
    assert _query(path)["q"] == ["DROP SERIES FROM tx_bytes"]


def test_drop_series_reports_failure(server):
    server["post_status"] = 500
    with pytest.raises(InfluxError, match=r"status\(500"):
        drop_series(server["settings"], "tx_bytes")


def test_clean_drops_everything(server):
    dropped = clean(server["settings"])
    assert sorted(dropped) == ["rx_bytes", "tx_bytes"]
    posts = [_query(path)["q"][0] for method, path in server["requests"] if method == "POST"]
    assert sorted(posts) == ["DROP SERIES FROM rx_bytes", "DROP SERIES FROM tx_bytes"]


def test_clean_stops_on_failure(server):
    server["post_status"] = 404
    with pytest.raises(InfluxError):
        clean(server["settings"])
    posts = [path for method, path in server["requests"] if method == "POST"]
    assert len(posts) == 1