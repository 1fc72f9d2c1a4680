#!/usr/bin/env python3
"""Lightweight end-to-end test for the leaf triage Flask server.

Usage:
  python3 scripts/test_inference.py [--start-server] [--host HOST] [--port PORT]

Optionally starts `app.py` as a subprocess, polls `/health` until it is ready,
then sends a generated green leaf image to `/api/detect` (multipart) and to
`/api/analyze` (data URL) and prints both responses. A server started here is
terminated when done.
"""
import argparse
import base64
import io
import subprocess
import sys
import time

import requests
from PIL import Image


def wait_for_health(url, timeout=30.0, interval=0.5):
    start = time.time()
    while time.time() - start < timeout:
        try:
            r = requests.get(url, timeout=2.0)
            if r.status_code == 200:
                return r.json()
        except requests.RequestException:
            pass
        time.sleep(interval)
    raise TimeoutError(f"Timed out waiting for {url} to respond")


def sample_png_bytes():
    img = Image.new("RGB", (224, 224), color=(50, 150, 50))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def print_response(label, r):
    print(f"{label} status:", r.status_code)
    try:
        print(r.json())
    except ValueError:
        print(r.text)


def run_test(host, port, start_server=False):
    server_proc = None
    if start_server:
        server_cmd = [sys.executable, "app.py", "--port", str(port)]
        print("Starting server:", " ".join(server_cmd))
        server_proc = subprocess.Popen(server_cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)

    try:
        base_url = f"http://{host}:{port}"
        print("Waiting for health endpoint:", base_url + "/health")
        info = wait_for_health(base_url + "/health", timeout=60.0)
        print("Health returned:", info)

        png = sample_png_bytes()

        files = {"file": ("sample_leaf.png", png, "image/png")}
        r = requests.post(base_url + "/api/detect", files=files, timeout=20.0)
        print_response("Detect", r)

        data_url = "data:image/png;base64," + base64.b64encode(png).decode("ascii")
        r = requests.post(base_url + "/api/analyze", json={"imageData": data_url}, timeout=20.0)
        print_response("Analyze", r)

    finally:
        if server_proc:
            print("Stopping server process...")
            server_proc.terminate()
            try:
                server_proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                server_proc.kill()


def parse_args():
    p = argparse.ArgumentParser()
    p.add_argument("--start-server", action="store_true", help="Start app.py as a subprocess")
    p.add_argument("--host", default="127.0.0.1", help="Server host")
    p.add_argument("--port", default=5000, type=int, help="Server port")
    return p.parse_args()


if __name__ == "__main__":
    args = parse_args()
    try:
        run_test(args.host, args.port, start_server=args.start_server)
    except Exception as e:
        print("Test failed:", e, file=sys.stderr)
        sys.exit(2)
    print("Test completed")
