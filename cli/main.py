#!/usr/bin/env python3
"""
Showcase CLI - Command line interface for homepage section management.
"""

import argparse
import os
import sys

import httpx
from rich.console import Console
from rich.table import Table

from api.enums import LayoutType
from api.errors import truncate_string
from config import ADMIN_API_SECRET, ADMIN_PORT, ERROR_DETAIL_MAX_LENGTH, ERROR_SUMMARY_MAX_LENGTH


def positive_int(value: str) -> int:
    """Argparse type converter that validates positive integers."""
    i = int(value)
    if i <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {i}")
    return i


# Default timeout for API requests (30 seconds)
DEFAULT_API_TIMEOUT = int(os.getenv("SHOWCASE_API_TIMEOUT", "30"))

# Admin API URL - can override host and port, or use the port from config
_default_api_url = f"http://localhost:{ADMIN_PORT}"
API_BASE = os.getenv("SHOWCASE_ADMIN_API_URL", _default_api_url).rstrip("/") + "/api"

console = Console()


class CLIError(Exception):
    """Custom exception for CLI errors."""

    pass


def safe_json_response(response, default_error="Request failed"):
    """
    Safely parse JSON response with proper error handling.

    Args:
        response: httpx.Response object
        default_error: Default error message if response has no detail

    Returns:
        Parsed JSON data if successful

    Raises:
        CLIError: If response status is not successful or JSON parsing fails
    """
    if not response.is_success:
        try:
            detail = response.json().get("detail", response.text)
        except (ValueError, AttributeError, httpx.ResponseNotRead):
            detail = truncate_string(response.text, ERROR_DETAIL_MAX_LENGTH) if response.text else default_error
        raise CLIError(f"API error ({response.status_code}): {detail}")

    try:
        return response.json()
    except (ValueError, httpx.ResponseNotRead):
        raise CLIError(f"Invalid JSON response: {truncate_string(response.text, ERROR_SUMMARY_MAX_LENGTH)}")


def get_admin_headers() -> dict:
    """Get headers for admin API requests."""
    headers = {}
    if ADMIN_API_SECRET:
        headers["X-Admin-Secret"] = ADMIN_API_SECRET
    return headers


def handle_auth_error(response) -> bool:
    """
    Check for auth errors and provide helpful message.

    Returns True if an auth error was handled (and program should exit).
    """
    if response.status_code == 401:
        print("Error: Authentication required.")
        print("The admin API requires authentication. Set SHOWCASE_ADMIN_API_SECRET environment variable.")
        sys.exit(1)
    elif response.status_code == 403:
        print("Error: Authentication failed - invalid secret.")
        print("Check that SHOWCASE_ADMIN_API_SECRET matches the server configuration.")
        sys.exit(1)
    return False


def api_request(method: str, path: str, **kwargs):
    """Call the admin API and return the decoded JSON body."""
    response = httpx.request(
        method,
        f"{API_BASE}{path}",
        headers=get_admin_headers(),
        timeout=DEFAULT_API_TIMEOUT,
        **kwargs,
    )
    handle_auth_error(response)
    return safe_json_response(response)


def _fail(message: str) -> None:
    print(message)
    sys.exit(1)


def _run(action) -> None:
    """Run a command body, turning connection and API failures into exit code 1."""
    try:
        action()
    except httpx.ConnectError:
        print(f"Error: Could not connect to admin API at {API_BASE}")
        _fail("Make sure the admin server is running.")
    except httpx.TimeoutException:
        _fail(f"Error: Request timed out while connecting to {API_BASE}")
    except CLIError as e:
        _fail(f"Error: {e}")


def _print_section(section: dict) -> None:
    print(f"Section {section['id']}: {section['title']} ({section['layout_type']}, order {section['order']})")
    for ref in section.get("videos", []):
        video = ref.get("video")
        title = ref["title"] or (video["title"] if video else "") or "-"
        status = "" if video else "  [missing video]"
        print(f"  ref {ref['id']:<5} video {ref['video_id']:<6} order {ref['order']:<4} {title}{status}")


def cmd_sections(args):
    """List sections."""

    def action():
        sections = api_request("GET", "/sections")
        if args.visible:
            sections = [s for s in sections if s["visible"]]

        if not sections:
            print("No sections found.")
            return

        table = Table(title=f"Sections ({len(sections)})")
        table.add_column("ID", justify="right")
        table.add_column("Order", justify="right")
        table.add_column("Title")
        table.add_column("Layout")
        table.add_column("Visible")
        table.add_column("Videos", justify="right")
        for s in sections:
            table.add_row(
                str(s["id"]),
                str(s["order"]),
                truncate_string(s["title"], 40),
                s["layout_type"],
                "yes" if s["visible"] else "no",
                str(s["video_count"]),
            )
        console.print(table)

    _run(action)


def cmd_create_section(args):
    """Create a section."""

    def action():
        payload = {"title": args.title, "layout_type": args.layout}
        if args.description:
            payload["description"] = args.description
        if args.hidden:
            payload["visible"] = False
        section = api_request("POST", "/sections", json=payload)
        print(f"Created section {section['id']}: {section['title']} (order {section['order']})")

    _run(action)


def cmd_delete_section(args):
    """Delete a section."""

    def action():
        api_request("DELETE", f"/sections/{args.section_id}")
        print(f"Section {args.section_id} deleted.")

    _run(action)


def cmd_reorder_sections(args):
    """Put sections in the given order."""

    def action():
        payload = {"sections": [{"id": section_id} for section_id in args.section_ids]}
        sections = api_request("PUT", "/sections/reorder", json=payload)
        print("New section order:")
        for s in sections:
            print(f"  {s['order']:<4} {s['id']:<5} {s['title']}")

    _run(action)


def cmd_add_video(args):
    """Add a video to a section."""

    def action():
        payload = {"video_id": args.video_id}
        if args.title:
            payload["title"] = args.title
        section = api_request("POST", f"/sections/{args.section_id}/videos", json=payload)
        print(f"Added video {args.video_id} to section {args.section_id}.")
        _print_section(section)

    _run(action)


def cmd_remove_video(args):
    """Remove a video from a section."""

    def action():
        section = api_request("DELETE", f"/sections/{args.section_id}/videos/{args.ref_id}")
        print(f"Removed ref {args.ref_id} from section {args.section_id}.")
        _print_section(section)

    _run(action)


def cmd_videos(args):
    """List videos."""

    def action():
        path = "/videos/unused" if args.unused else "/videos"
        params = {"limit": args.limit, "offset": args.offset}
        if args.search:
            params["search"] = args.search
        result = api_request("GET", path, params=params)
        videos_list = result.get("videos", [])

        if not videos_list:
            print("No unused videos found." if args.unused else "No videos found.")
            return

        print(f"{'ID':<6} {'Used':<6} {'Duration':<10} {'Title':<40}")
        print("-" * 65)
        for v in videos_list:
            title = truncate_string(v["title"], 40, suffix="..")
            used = "yes" if v["is_used"] else "no"
            print(f"{v['id']:<6} {used:<6} {v['duration_formatted']:<10} {title:<40}")
        if result.get("total", len(videos_list)) > len(videos_list):
            print(f"\nShowing {len(videos_list)} of {result['total']} (offset {result.get('offset', 0)})")

    _run(action)


def cmd_reconcile_usage(args):
    """Recompute which videos are used by a section."""

    def action():
        result = api_request("POST", "/videos/reconcile-usage")
        changed = result.get("changed", 0)
        if changed:
            print(f"Corrected usage flag on {changed} video(s).")
        else:
            print("Usage flags already consistent.")

    _run(action)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="showcase", description="Showcase CLI - Manage homepage video sections")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Sections
    sections_parser = subparsers.add_parser("sections", help="List sections")
    sections_parser.add_argument("--visible", action="store_true", help="Only show visible sections")
    sections_parser.set_defaults(func=cmd_sections)

    create_parser = subparsers.add_parser("create-section", help="Create a section")
    create_parser.add_argument("title", help="Section title")
    create_parser.add_argument(
        "-l", "--layout", choices=LayoutType.values(), default=LayoutType.CARD.value, help="Layout (default: card)"
    )
    create_parser.add_argument("-d", "--description", help="Section description")
    create_parser.add_argument("--hidden", action="store_true", help="Create the section hidden")
    create_parser.set_defaults(func=cmd_create_section)

    delete_parser = subparsers.add_parser("delete-section", help="Delete a section")
    delete_parser.add_argument("section_id", type=positive_int, help="Section ID to delete")
    delete_parser.set_defaults(func=cmd_delete_section)

    reorder_parser = subparsers.add_parser("reorder-sections", help="Set section order")
    reorder_parser.add_argument("section_ids", type=positive_int, nargs="+", metavar="ID", help="Section IDs in order")
    reorder_parser.set_defaults(func=cmd_reorder_sections)

    # Videos in sections
    add_parser = subparsers.add_parser("add-video", help="Add a video to a section")
    add_parser.add_argument("section_id", type=positive_int, help="Section ID")
    add_parser.add_argument("video_id", type=positive_int, help="Video ID")
    add_parser.add_argument("-t", "--title", help="Title shown in this section (default: video title)")
    add_parser.set_defaults(func=cmd_add_video)

    remove_parser = subparsers.add_parser("remove-video", help="Remove a video from a section")
    remove_parser.add_argument("section_id", type=positive_int, help="Section ID")
    remove_parser.add_argument("ref_id", type=positive_int, help="Ref ID of the video within the section")
    remove_parser.set_defaults(func=cmd_remove_video)

    # Videos
    videos_parser = subparsers.add_parser("videos", help="List videos")
    videos_parser.add_argument("--unused", action="store_true", help="Only videos no section shows")
    videos_parser.add_argument("-s", "--search", help="Match title or description")
    videos_parser.add_argument("--limit", type=positive_int, default=100, help="Max videos to list (default 100)")
    videos_parser.add_argument("--offset", type=int, default=0, help="Number of videos to skip")
    videos_parser.set_defaults(func=cmd_videos)

    reconcile_parser = subparsers.add_parser("reconcile-usage", help="Repair video usage flags")
    reconcile_parser.set_defaults(func=cmd_reconcile_usage)

    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
