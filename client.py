"""
Command-line client for the game asset MCP server over streamable-http.

Connects with plain HTTP JSON-RPC requests, calls one of the generation
tools and, for 3D jobs, polls get_operation_status until the job finishes.
"""
import argparse
import json
import sys
import time
from typing import Any, Dict, Optional

import requests

MCP_ENDPOINT = "http://127.0.0.1:3000/mcp"
REQUEST_TIMEOUT = 300  # 2D generation answers inline and can be slow
POLL_INTERVAL = 5
REQUEST_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json, text/event-stream",
}
PROTOCOL_VERSION = "2025-03-26"


def parse_sse_response(response_text: str) -> dict:
    """Parse Server-Sent Events (SSE) response format."""
    lines = response_text.replace("\r\n", "\n").split("\n")
    for line in lines:
        line = line.strip()
        if line.startswith("data: "):
            try:
                return json.loads(line[6:])
            except json.JSONDecodeError:
                continue
    raise ValueError("No valid JSON data found in SSE response")


class MCPHttpClient:
    """Minimal JSON-RPC session against a streamable-http MCP endpoint"""

    def __init__(self, endpoint: str = MCP_ENDPOINT):
        self.endpoint = endpoint
        self.http = requests.Session()
        self.http.headers.update(REQUEST_HEADERS)
        self._next_id = 1

    def _post(self, payload: Dict[str, Any]) -> Optional[dict]:
        response = self.http.post(self.endpoint, json=payload, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        session_id = response.headers.get("mcp-session-id")
        if session_id:
            self.http.headers["mcp-session-id"] = session_id
        if not response.content:
            return None
        if "text/event-stream" in response.headers.get("content-type", ""):
            return parse_sse_response(response.text)
        return response.json()

    def request(self, method: str, params: Optional[Dict[str, Any]] = None) -> dict:
        payload = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params or {}}
        self._next_id += 1
        result = self._post(payload)
        if result is None:
            raise ValueError(f"Empty response to {method}")
        if "error" in result:
            raise RuntimeError(f"{method} failed: {json.dumps(result['error'])}")
        return result["result"]

    def initialize(self):
        self.request("initialize", {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": "game-asset-cli", "version": "1.0.0"},
        })
        self._post({"jsonrpc": "2.0", "method": "notifications/initialized"})

    def call_tool(self, name: str, arguments: Dict[str, Any]) -> Any:
        """Call a tool and decode the JSON text it returns."""
        result = self.request("tools/call", {"name": name, "arguments": arguments})
        if result.get("structuredContent"):
            structured = result["structuredContent"]
            return structured.get("result", structured)
        for item in result.get("content", []):
            if item.get("type") == "text":
                try:
                    return json.loads(item["text"])
                except json.JSONDecodeError:
                    return item["text"]
        return result


def print_section(title: str, width: int = 60):
    print("\n" + "=" * width)
    print(title.center(width))
    print("=" * width)


def wait_for_operation(client: MCPHttpClient, operation_id: str, interval: float = POLL_INTERVAL) -> dict:
    """Poll the status tool until the operation reaches COMPLETED or ERROR."""
    last_message = None
    while True:
        status = client.call_tool("get_operation_status", {"operation_id": operation_id})
        if "error" in status:
            return status
        latest = status.get("latest") or {}
        if latest.get("message") != last_message:
            last_message = latest.get("message")
            print(f"  [{status['status']}] {last_message}")
        if status.get("finished"):
            return status
        time.sleep(interval)


def run(kind: str, prompt: str, endpoint: str) -> int:
    client = MCPHttpClient(endpoint)
    print_section("Game Asset MCP Client")
    client.initialize()

    if kind == "2d":
        result = client.call_tool("generate_2d_asset", {"prompt": prompt})
        print(json.dumps(result, indent=2))
        return 1 if "error" in result else 0

    ack = client.call_tool("generate_3d_asset", {"prompt": prompt})
    if "error" in ack:
        print(f"\n❌ {ack['error']}")
        return 1
    print(ack.get("message", ""))
    print_section(f"Waiting for {ack['operation_id']}")
    final = wait_for_operation(client, ack["operation_id"])

    print_section("Result")
    details = (final.get("latest") or {}).get("details", {})
    if final.get("status") == "COMPLETED":
        print(f"✅ OBJ: {details.get('obj_uri')}")
        print(f"✅ GLB: {details.get('glb_uri')}")
        return 0
    print(f"❌ {details.get('error') or final.get('error')}")
    return 1


def main():
    parser = argparse.ArgumentParser(
        description="Client for the game asset MCP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python client.py 2d "pixel art sword"
  python client.py 3d "low poly treasure chest" --endpoint http://localhost:3000/mcp
        """
    )
    parser.add_argument("kind", choices=("2d", "3d"), help="Asset kind to generate")
    parser.add_argument("prompt", help="Asset description")
    parser.add_argument("--endpoint", default=MCP_ENDPOINT, help=f"MCP endpoint (default: {MCP_ENDPOINT})")
    args = parser.parse_args()

    try:
        sys.exit(run(args.kind, args.prompt, args.endpoint))
    except KeyboardInterrupt:
        print("\n\n⚠️  Interrupted by user.")
        sys.exit(1)
    except (requests.RequestException, ValueError, RuntimeError) as e:
        print(f"\n❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
