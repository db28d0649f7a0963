"""
Command-line entry point.

    python -m company_db init-db
    python -m company_db parse <doc-id> [--source-dir DIR] [--save]
    python -m company_db batch [<doc-id> ...] [--source-dir DIR]
    python -m company_db summary
    python -m company_db needing-updates
    python -m company_db search [--location TEXT] [--min-acv N] [--has-valuation] ...
"""
import argparse
import json
import sys

from .core.config import Settings, get_settings
from .core.db import Base, make_engine, make_session_factory
from .core.errors import PipelineError
from .core.logging import configure_logging
from .services import queries
from .services.batch import run_batch
from .services.pipeline import build_pipeline
from .services.sink import SqlRecordSink
from .services.sources import DirectorySource


def _settings(args) -> Settings:
    settings = get_settings()
    if getattr(args, "source_dir", None):
        settings = settings.model_copy(update={"NOTES_DIR": args.source_dir})
    return settings


def _sink(settings: Settings) -> SqlRecordSink:
    return SqlRecordSink(make_session_factory(settings.DATABASE_URL))


def cmd_init_db(args):
    # Local/dev convenience; deployed databases are managed with alembic
    settings = _settings(args)
    Base.metadata.create_all(bind=make_engine(settings.DATABASE_URL))
    print("company_records table ready")
    return 0


def cmd_parse(args):
    settings = _settings(args)
    pipeline = build_pipeline(settings)
    try:
        record = pipeline.parse(args.doc_id)
    except PipelineError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1

    if args.save:
        _sink(settings).upsert(record)
    print(record.model_dump_json(indent=2))
    return 0


def cmd_batch(args):
    settings = _settings(args)
    doc_ids = list(args.doc_ids)
    if not doc_ids:
        if not settings.NOTES_DIR:
            print("No document ids given (pass ids or --source-dir)", file=sys.stderr)
            return 2
        doc_ids = DirectorySource(settings.NOTES_DIR).list_document_ids()

    report = run_batch(build_pipeline(settings), doc_ids, _sink(settings))
    print(json.dumps(report.summary(), indent=2))
    return 1 if report.errors else 0


def cmd_summary(args):
    records = _sink(_settings(args)).all_records()
    print(queries.database_summary(records).model_dump_json(indent=2))
    return 0


def cmd_search(args):
    records = _sink(_settings(args)).all_records()
    matches = queries.search_companies(
        records,
        name=args.name,
        location=args.location,
        year_founded_min=args.year_founded_min,
        year_founded_max=args.year_founded_max,
        team_size_min=args.team_size_min,
        team_size_max=args.team_size_max,
        min_acv=args.min_acv,
        max_acv=args.max_acv,
        min_arr=args.min_arr,
        max_arr=args.max_arr,
        has_valuation=args.has_valuation,
        has_complex_acv=args.has_complex_acv,
    )
    print(json.dumps([r.model_dump(mode="json") for r in matches], indent=2))
    return 0


def cmd_needing_updates(args):
    records = _sink(_settings(args)).all_records()
    items = queries.companies_needing_updates(records)
    if not items:
        print("All companies have their critical fields.")
        return 0
    for item in items:
        print(f"- {item.company_name or item.id}: missing {', '.join(item.missing_fields)}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Company notes to records")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # init-db
    subparsers.add_parser("init-db", help="Create tables in DATABASE_URL")

    # parse
    p = subparsers.add_parser("parse", help="Parse one note and print the record")
    p.add_argument("doc_id", help="Document id")
    p.add_argument("--source-dir", help="Read notes from this directory")
    p.add_argument("--save", action="store_true", help="Also upsert into the database")

    # batch
    p = subparsers.add_parser("batch", help="Parse and store many notes")
    p.add_argument("doc_ids", nargs="*", help="Document ids (default: every note in --source-dir)")
    p.add_argument("--source-dir", help="Read notes from this directory")

    # queries
    subparsers.add_parser("summary", help="Database summary")
    subparsers.add_parser("needing-updates", help="Companies missing critical fields")

    # search
    p = subparsers.add_parser("search", help="Filter stored companies")
    p.add_argument("--name", help="Exact company name (case-insensitive)")
    p.add_argument("--location", help="Substring of location")
    p.add_argument("--year-founded-min", type=int)
    p.add_argument("--year-founded-max", type=int)
    p.add_argument("--team-size-min", type=int)
    p.add_argument("--team-size-max", type=int)
    p.add_argument("--min-acv", type=float)
    p.add_argument("--max-acv", type=float)
    p.add_argument("--min-arr", type=float)
    p.add_argument("--max-arr", type=float)
    p.add_argument("--has-valuation", action=argparse.BooleanOptionalAction, default=None)
    p.add_argument("--has-complex-acv", action=argparse.BooleanOptionalAction, default=None)

    args = parser.parse_args(argv)
    configure_logging()

    commands = {
        "init-db": cmd_init_db,
        "parse": cmd_parse,
        "batch": cmd_batch,
        "summary": cmd_summary,
        "needing-updates": cmd_needing_updates,
        "search": cmd_search,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
