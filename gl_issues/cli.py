"""CLI entry point for gl-issues."""

from __future__ import annotations

import argparse
import getpass
import os
import sys

import requests

from gl_issues import __version__
from gl_issues.client import GitLabClient
from gl_issues.importer import IssueImporter
from gl_issues.issue_file import FileParser, IssueFileError
from gl_issues.logging_utils import setup_logging
from gl_issues.models import (
    DEFAULT_GITLAB_URL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_SEPARATOR,
    GITLAB_TOKEN_ENV,
    GITLAB_URL_ENV,
)


def separator(value: str) -> str:
    """argparse type for a single-character CSV separator."""
    if value in ("\\t", "tab"):
        return "\t"
    if len(value) != 1:
        raise argparse.ArgumentTypeError(f"separator must be a single character, got {value!r}")
    return value


def label_list(value: str) -> list[str]:
    """argparse type for a comma-separated list of non-empty labels."""
    labels = [label.strip() for label in value.split(",")]
    if any(not label for label in labels):
        raise argparse.ArgumentTypeError("labels must be a comma separated list of non-empty strings")
    return labels


def column_index(value: str) -> int:
    try:
        index = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"column index must be an integer, got {value!r}") from None
    if index < 0:
        raise argparse.ArgumentTypeError(f"column index must not be negative, got {index}")
    return index


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gl-issues",
        description="Create GitLab issues from the rows of a CSV or JSON file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Each CSV row, or each object of a JSON file (a single object or a list of
objects), becomes one issue in the target project.

Environment:
    GITLAB_URL          - GitLab instance URL (default: https://gitlab.com)
    GITLAB_ACCESS_TOKEN - GitLab Personal Access Token (prompted for if unset)
    RUST_LOG            - Log level: trace, debug, info, warn, error

Examples:
    # Create issues from a CSV file with "title" and "description" columns
    gl-issues -f backlog.csv --project-path myorg/myproject --description-key description

    # Semicolon separated file without header, title in the first column
    gl-issues -f tasks.csv -s ";" --no-header --title-column 0 --project-id 42

    # Put every other column into the description and label the issues
    gl-issues -f bugs.json -p myproject --title-key summary --combine-remaining -l bug,imported

    # Check how the file would be read, without talking to GitLab
    gl-issues -f backlog.csv --check
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    source = parser.add_argument_group("input file")
    source.add_argument("-f", "--file", required=True, metavar="FILE", help="CSV or JSON file with the issues")
    source.add_argument(
        "-s",
        "--separator",
        type=separator,
        default=DEFAULT_SEPARATOR,
        help=f"CSV field separator, a single character or '\\t' (default: '{DEFAULT_SEPARATOR}')",
    )
    source.add_argument("--no-header", action="store_true", help="The CSV file has no header row")

    title = source.add_mutually_exclusive_group()
    title.add_argument("--title-key", default=None, help="Column name or JSON key holding the title (default: title)")
    title.add_argument("--title-column", type=column_index, default=None, help="Zero-based CSV column of the title")

    description = source.add_mutually_exclusive_group()
    description.add_argument("--description-key", default=None, help="Column name or JSON key holding the description")
    description.add_argument(
        "--description-column", type=column_index, default=None, help="Zero-based CSV column of the description"
    )
    source.add_argument(
        "--combine-remaining",
        action="store_true",
        help="Build the description from every column/key except the title",
    )
    source.add_argument("--prepend-title", default=None, metavar="TEXT", help="Text to put in front of every title")

    target = parser.add_argument_group("target project")
    project = target.add_mutually_exclusive_group()
    project.add_argument("--project-id", type=int, default=None, help="Numeric ID of the project")
    project.add_argument("-p", "--project-name", default=None, help="Name of the project (must be unambiguous)")
    project.add_argument("--project-path", default=None, help="Full path or web URL of the project")

    issue = parser.add_argument_group("issue fields")
    issue.add_argument("-l", "--labels", type=label_list, default=None, help="Comma separated labels for every issue")
    issue.add_argument("-a", "--assignee", default=None, help="Username or user ID to assign every issue to")

    conn = parser.add_argument_group("connection")
    conn.add_argument(
        "-u", "--url", default=None, help=f"GitLab instance URL (default: from {GITLAB_URL_ENV} or {DEFAULT_GITLAB_URL})"
    )
    conn.add_argument("-t", "--token", default=None, help=f"Access token (default: from {GITLAB_TOKEN_ENV})")
    conn.add_argument("-n", "--no-ssl-verify", action="store_true", help="Do not verify the server's TLS certificate")
    conn.add_argument(
        "--max-retries",
        type=int,
        default=DEFAULT_MAX_RETRIES,
        help=f"Maximum retry attempts for transient errors (default: {DEFAULT_MAX_RETRIES})",
    )

    parser.add_argument("-c", "--check", action="store_true", help="Only parse the file and list the issues, no upload")
    parser.add_argument("--dry-run", action="store_true", help="Resolve project and assignee but create nothing")
    parser.add_argument(
        "--json", action="store_true", dest="json_output", help="Output results as JSON lines (to stderr)"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def resolve_token(args: argparse.Namespace) -> str | None:
    """Token from the command line, the environment, or an interactive prompt."""
    token = args.token or os.environ.get(GITLAB_TOKEN_ENV)
    if token:
        return token
    if sys.stdin.isatty():
        return getpass.getpass("GitLab access token: ") or None
    return None


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.check and args.project_id is None and not args.project_name and not args.project_path:
        parser.error("one of --project-id, --project-name or --project-path is required")

    logger = setup_logging(json_mode=args.json_output, verbose=args.verbose)

    # Parse the whole file before talking to GitLab
    file_parser = FileParser(
        args.file,
        separator=args.separator,
        no_header=args.no_header,
        title_key=args.title_key,
        title_column=args.title_column,
        description_key=args.description_key,
        description_column=args.description_column,
        prepend_title=args.prepend_title,
        combine_remaining=args.combine_remaining,
    )
    try:
        issues = file_parser.get_issues()
    except IssueFileError as e:
        logger.error(str(e))
        return 1
    logger.info(f"Read {len(issues)} issues from {args.file}")

    if args.check:
        IssueImporter(client=None, project=None).check_issues(issues)
        logger.info(f"Done: {len(issues)} issues checked, nothing uploaded")
        return 0

    if not issues:
        logger.warning("No issues found in file, nothing to do")
        return 0

    gitlab_url = args.url or os.environ.get(GITLAB_URL_ENV, DEFAULT_GITLAB_URL)
    token = resolve_token(args)
    if not token:
        logger.error(f"No access token: use --token or set the {GITLAB_TOKEN_ENV} environment variable.")
        return 1

    client = GitLabClient(
        base_url=gitlab_url,
        token=token,
        dry_run=args.dry_run,
        max_retries=args.max_retries,
        verify_ssl=not args.no_ssl_verify,
    )
    if args.no_ssl_verify:
        logger.warning("TLS certificate verification is disabled")

    try:
        project = client.resolve_project(
            project_id=args.project_id, name=args.project_name, path=args.project_path
        )
        logger.info(f"Resolved project '{project.path_with_namespace}' (id={project.id})")

        assignee_id = None
        if args.assignee:
            assignee_id = client.resolve_assignee(project.id, args.assignee)
            logger.info(f"Resolved assignee '{args.assignee}' (id={assignee_id})")

        if args.labels:
            try:
                existing = {name.lower() for name in client.get_project_labels(project.id)}
            except requests.RequestException as e:
                logger.debug(f"Could not list project labels: {e}")
            else:
                missing = [label for label in args.labels if label.lower() not in existing]
                if missing:
                    logger.warning(
                        f"Labels not yet defined in the project, GitLab will create them: {', '.join(missing)}"
                    )
    except (SystemExit, ValueError) as e:
        logger.error(str(e))
        return 1
    except requests.RequestException as e:
        logger.error(f"Fatal API error: {e}")
        return 1

    if args.dry_run:
        logger.info("DRY-RUN MODE - no issues will be created")

    importer = IssueImporter(client, project, labels=args.labels, assignee_id=assignee_id)
    try:
        results = importer.import_issues(issues)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    # Summary
    created = sum(1 for r in results if r.action in ("created", "would_create"))
    errors = sum(1 for r in results if r.action == "error")
    logger.info(
        f"Done: {len(results)} issues, {created} {'would be created' if args.dry_run else 'created'}, {errors} errors"
    )

    # Exit code: non-zero if any errors
    return 1 if errors > 0 else 0


if __name__ == "__main__":
    sys.exit(main())
