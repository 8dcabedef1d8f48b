"""Entry point for tickboard CLI."""

import sys

NOUNS = {"board", "backlog", "ticket", "sprint", "watch", "web"}


def run_app(argv: list[str]) -> None:
    from tickboard.cli import build_app_parser
    from tickboard.cli._common import require_project, settings
    from tickboard.ui import TickboardApp

    args = build_app_parser().parse_args(argv)
    if args.project_id:
        args.project = args.project_id
    cfg = settings(args)
    project = require_project(cfg, args.json)
    app = TickboardApp(cfg, project, sprint_id=args.sprint, planner=args.planner)
    app.run()


def main():
    # No subcommand or non-noun argument = TUI mode
    if len(sys.argv) < 2 or sys.argv[1] not in NOUNS and sys.argv[1] not in ("-h", "--help"):
        run_app(sys.argv[1:])
        return

    from tickboard.cli import build_parser

    parser = build_parser()
    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
