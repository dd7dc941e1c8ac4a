"""
Example: relay requests through a local proxy endpoint.

Starts a tiny relay on localhost that decodes the JSON envelope, performs the
real request and returns the body if its content type is allowed. The client
then fetches through it with the ``*_proxy`` methods.
"""

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from relayfetch import Blob, FetchError, Fetcher, ProxyEnvelope


class RelayHandler(BaseHTTPRequestHandler):
    def log_message(self, format, *args):
        pass

    def do_POST(self):
        length = int(self.headers.get("Content-Length") or 0)
        envelope = ProxyEnvelope.from_json(self.rfile.read(length))
        upstream = Fetcher()
        try:
            if envelope.method == "GET":
                blob = upstream.get_blob(envelope.url)
            else:
                blob = Blob(
                    upstream.request(
                        envelope.url, envelope.method, envelope.headers, envelope.body
                    )
                )
        except FetchError as exc:
            self.send_response(exc.status_code or 502)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return

        mime = blob.type
        if envelope.allowed_mimes and mime.split(";")[0] not in envelope.allowed_mimes:
            self.send_response(415)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return

        self.send_response(200)
        self.send_header("Content-Type", mime)
        self.send_header("Content-Length", str(blob.size))
        self.end_headers()
        self.wfile.write(blob.data)


def main():
    server = ThreadingHTTPServer(("127.0.0.1", 0), RelayHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    base_url = f"http://127.0.0.1:{server.server_address[1]}/"

    fetcher = Fetcher(base_url=base_url, proxy_path="/proxy")
    data = fetcher.get_json_proxy("https://httpbin.org/json", allowed_mimes=["application/json"])
    print(f"Relayed JSON keys: {list(data)}")

    try:
        fetcher.get_text_proxy("https://httpbin.org/html", allowed_mimes=["application/json"])
    except FetchError as exc:
        print(f"Rejected by relay: {exc}")

    server.shutdown()


if __name__ == "__main__":
    main()
