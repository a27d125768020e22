#!/usr/bin/env python3
"""semcanvas CLI - drive the structural model editor backend from a shell."""

import argparse
import json
import os
import sys
import urllib.error
import urllib.parse
import urllib.request

API_BASE = os.environ.get("SEMCANVAS_API", "http://127.0.0.1:8765/api")


def _json_out(data):
    print(json.dumps(data))
    sys.exit(0)


def _text_out(text):
    sys.stdout.write(text)
    sys.exit(0)


def _api_request(method, endpoint, data=None, params=None, raw=False):
    """Make a request to the semcanvas backend."""
    url = f"{API_BASE}{endpoint}"

    if params:
        filtered = {k: v for k, v in params.items() if v is not None}
        if filtered:
            url = f"{url}?{urllib.parse.urlencode(filtered)}"

    headers = {"Content-Type": "application/json"}
    body = json.dumps(data).encode() if data is not None else None

    req = urllib.request.Request(url, data=body, headers=headers, method=method)

    try:
        with urllib.request.urlopen(req, timeout=30) as response:
            payload = response.read().decode()
            return payload if raw else json.loads(payload)
    except urllib.error.HTTPError as e:
        error_body = e.read().decode()
        try:
            error_data = json.loads(error_body)
            _json_out({"status": "error", "error": f"API error: {error_data.get('detail', 'Unknown error')}"})
        except json.JSONDecodeError:
            _json_out({"status": "error", "error": f"API error ({e.code}): {error_body}"})
    except urllib.error.URLError as e:
        _json_out({"status": "error", "error": f"Connection failed: {e.reason}. Is the semcanvas backend running?"})


def _confirm(args, message):
    """Ask on the terminal unless --yes was given."""
    if args.yes:
        return True
    answer = input(f"{message} [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def _declined():
    _json_out({"status": "cancelled"})


# ── Model ────────────────────────────────────────────────────────────────────

def cmd_get_current(args):
    _json_out(_api_request("GET", "/model"))


def cmd_new(args):
    if not _confirm(args, "Start a new model? Unsaved changes will be lost."):
        _declined()
    _json_out(_api_request("POST", "/model/new", params={"confirm": "true"}))


def cmd_mermaid(args):
    _text_out(_api_request("GET", "/model/mermaid", params={"dark": str(args.dark).lower()}, raw=True))


def cmd_validate(args):
    _json_out(_api_request("GET", "/model/validate"))


# ── Variables ────────────────────────────────────────────────────────────────

def cmd_add_variable(args):
    _json_out(_api_request("POST", "/nodes", data={"label": args.label, "type": args.node_type}))


def cmd_move_variable(args):
    _json_out(_api_request("POST", f"/nodes/{args.node_id}/move", data={"x": args.x, "y": args.y}))


def cmd_delete_variable(args):
    if not _confirm(args, f'Delete variable "{args.node_id}"?'):
        _declined()
    _json_out(_api_request("DELETE", f"/nodes/{args.node_id}", params={"confirm": "true"}))


# ── Links ────────────────────────────────────────────────────────────────────

def cmd_add_link(args):
    _json_out(_api_request("POST", "/links", data={
        "source": args.source,
        "target": args.target,
        "type": args.link_type
    }))


def cmd_delete_link(args):
    if not _confirm(args, "Delete this link?"):
        _declined()
    _json_out(_api_request("DELETE", f"/links/{args.index}", params={"confirm": "true"}))


# ── Layout & History ─────────────────────────────────────────────────────────

def cmd_auto_layout(args):
    _json_out(_api_request("POST", "/layout/auto"))


def cmd_undo(args):
    _json_out(_api_request("POST", "/undo"))


def cmd_redo(args):
    _json_out(_api_request("POST", "/redo"))


# ── Saved models ─────────────────────────────────────────────────────────────

def cmd_save(args):
    _json_out(_api_request("POST", "/snapshots", data={"name": args.name}))


def cmd_list_saved(args):
    _json_out(_api_request("GET", "/snapshots"))


def cmd_load(args):
    if not _confirm(args, f'Load "{args.model_id}"? Current canvas will be replaced.'):
        _declined()
    _json_out(_api_request("POST", f"/snapshots/{args.model_id}/load", params={"confirm": "true"}))


def cmd_delete_saved(args):
    if not _confirm(args, "Are you sure you want to delete this saved file?"):
        _declined()
    _json_out(_api_request("DELETE", f"/snapshots/{args.model_id}", params={"confirm": "true"}))


# ── Main ─────────────────────────────────────────────────────────────────────

def build_parser():
    parser = argparse.ArgumentParser(description="semcanvas CLI")
    parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompts")
    sub = parser.add_subparsers(dest="command", required=True)

    # Model
    sub.add_parser("get-current")
    sub.add_parser("new")

    p = sub.add_parser("mermaid")
    p.add_argument("--dark", action="store_true")

    sub.add_parser("validate")

    # Variables
    p = sub.add_parser("add-variable")
    p.add_argument("--label", required=True)
    p.add_argument("--node-type", choices=["latent", "observed"], default="latent")

    p = sub.add_parser("move-variable")
    p.add_argument("--node-id", required=True)
    p.add_argument("--x", type=float, required=True)
    p.add_argument("--y", type=float, required=True)

    p = sub.add_parser("delete-variable")
    p.add_argument("--node-id", required=True)

    # Links
    p = sub.add_parser("add-link")
    p.add_argument("--source", required=True)
    p.add_argument("--target", required=True)
    p.add_argument("--link-type", choices=["directed", "covariance"], default="directed")

    p = sub.add_parser("delete-link")
    p.add_argument("--index", type=int, required=True)

    # Layout & History
    sub.add_parser("auto-layout")
    sub.add_parser("undo")
    sub.add_parser("redo")

    # Saved models
    p = sub.add_parser("save")
    p.add_argument("--name", default=None)

    sub.add_parser("list-saved")

    p = sub.add_parser("load")
    p.add_argument("--model-id", required=True)

    p = sub.add_parser("delete-saved")
    p.add_argument("--model-id", required=True)

    return parser


COMMANDS = {
    "get-current": cmd_get_current,
    "new": cmd_new,
    "mermaid": cmd_mermaid,
    "validate": cmd_validate,
    "add-variable": cmd_add_variable,
    "move-variable": cmd_move_variable,
    "delete-variable": cmd_delete_variable,
    "add-link": cmd_add_link,
    "delete-link": cmd_delete_link,
    "auto-layout": cmd_auto_layout,
    "undo": cmd_undo,
    "redo": cmd_redo,
    "save": cmd_save,
    "list-saved": cmd_list_saved,
    "load": cmd_load,
    "delete-saved": cmd_delete_saved,
}


def main(argv=None):
    args = build_parser().parse_args(argv)
    COMMANDS[args.command](args)


if __name__ == "__main__":
    main()
