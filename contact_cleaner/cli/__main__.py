from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from dotenv import load_dotenv

from contact_cleaner.completion.client import AuthError, CompletionClient, CompletionError
from contact_cleaner.config.loader import DEFAULT_CONFIG_PATH, CleanerConfig, ConfigError, load_config
from contact_cleaner.csv_table.reader import CsvTable, ValidationError, read_csv_file
from contact_cleaner.csv_table.writer import export_csv
from contact_cleaner.logging.error_log import ErrorLogBuffer
from contact_cleaner.logging.init import log_summary, set_debug, setup_logging
from contact_cleaner.models.session import CleaningSession
from contact_cleaner.services import dedup
from contact_cleaner.services.orchestrator import ProcessingError, RowCleaner
from contact_cleaner.services.summary import render_row_line, render_summary_line

"""CLI entrypoint.

Flow:
- Load .env and config
- Read + validate the input CSV (rejected files stop here)
- Clean every row through the completion endpoint
- Optional deduplication and export
- SUMMARY line and exit code
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv (values override the process environment)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Clean a contact CSV through a language-model completion endpoint")
    p.add_argument("input", help="CSV file to clean (';' or ',' separated, UTF-8)")
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="YAML config path")
    p.add_argument("--output", help="Write the cleaned rows to this CSV file")
    p.add_argument(
        "--dedupe",
        choices=dedup.KEEP_STRATEGIES,
        help="Drop duplicate (first name, last name) rows, keeping the first/best/all members",
    )
    p.add_argument("--assistant-id", help="Override the configured assistant id")
    p.add_argument("--report", action="store_true", help="Print one line per cleaned row")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print headers & first rows then exit")
    p.add_argument("--validate-token", action="store_true", help="Check the API token then exit")
    p.add_argument("--list-assistants", action="store_true", help="List the assistants visible to the API token then exit")
    return p.parse_args(argv)


def _inspect_data(table: CsvTable) -> int:
    frame = table.to_frame()
    print(f"separator={table.separator!r} columns={list(frame.columns)} rows={len(frame)}")
    print(frame.head(5).to_string(index=False))
    return EXIT_SUCCESS_ALL


@contextmanager
def _interrupt_sets(event: threading.Event) -> Iterator[None]:
    """Route Ctrl-C to ``event`` so the cleaning loop stops on a row boundary."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, frame):  # noqa: ARG001
        event.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _build_client(cfg: CleanerConfig, assistant_id: str | None) -> CompletionClient:
    client = CompletionClient(
        base_url=cfg.completion.base_url,
        assistant_id=cfg.completion.assistant_id,
        temperature=cfg.completion.temperature,
        timeout_seconds=cfg.completion.timeout_seconds,
    )
    if assistant_id:
        client.set_assistant_id(assistant_id)
    return client


def _list_assistants(client: CompletionClient, credential: str | None, logger: logging.Logger) -> int:
    try:
        assistants = client.list_assistants(credential)
    except CompletionError as e:
        logger.error(f"assistants: {e}")
        return EXIT_FATAL
    if isinstance(assistants, dict):
        assistants = assistants.get("data", [assistants])
    if not isinstance(assistants, list):
        assistants = [assistants]
    for item in assistants:
        if isinstance(item, dict):
            logger.info(f"assistant: id={item.get('id', '-')} name={item.get('name', '-')}")
        else:
            logger.info(f"assistant: {item}")
    logger.info(f"assistants: count={len(assistants)} current={client.assistant_id}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # Only None falls back to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(True)

    try:
        cfg = load_config(Path(args.config))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    input_path = Path(args.input)
    try:
        table = read_csv_file(
            input_path,
            max_bytes=cfg.input.max_file_bytes,
            allowed_extensions=cfg.input.allowed_extensions,
        )
    except ValidationError as e:
        logger.error(f"input: {e}")
        return EXIT_FATAL

    logger.info(
        f"Loaded {input_path.name}: rows={len(table.rows)} columns={len(table.headers)} separator={table.separator!r}"
    )

    if args.inspect_data:
        return _inspect_data(table)

    credential = os.getenv(cfg.credential_env)

    with _build_client(cfg, args.assistant_id) as client:
        if args.validate_token:
            if client.validate_credential(credential):
                logger.info("token: valid")
                return EXIT_SUCCESS_ALL
            logger.error(f"token: invalid or missing (env {cfg.credential_env})")
            return EXIT_FATAL

        if args.list_assistants:
            return _list_assistants(client, credential, logger)

        session = CleaningSession()
        session.load(table.headers, table.rows)
        cleaner = RowCleaner(
            client,
            credential,
            error_log=ErrorLogBuffer(Path(cfg.logs_directory)),
            file_name=input_path.name,
        )
        cancel = threading.Event()
        try:
            with _interrupt_sets(cancel):
                result = cleaner.clean(session, cancel_event=cancel)
        except AuthError as e:
            logger.error(f"auth: {e} (set {cfg.credential_env} in the environment or .env)")
            return EXIT_FATAL
        except ProcessingError as e:
            logger.error(f"processing: {e}")
            return EXIT_FATAL

    if args.report:
        for index, cleaned in enumerate(session.cleaned_rows):
            logger.info(render_row_line(index, cleaned, session.headers, session.rows[index]))

    if args.dedupe:
        groups = dedup.find_groups(session.cleaned_rows)
        if not groups:
            logger.info("dedupe: no duplicates found")
        else:
            for group in groups:
                logger.info(f"dedupe: {group.title} rows={[i + 1 for i in group.indices]}")
            keep = dedup.select_keepers(session.cleaned_rows, groups, args.dedupe)
            before = len(session.cleaned_rows)
            session.cleaned_rows = dedup.apply(session.cleaned_rows, groups, keep)
            logger.info(f"dedupe: groups={len(groups)} removed={before - len(session.cleaned_rows)}")

    if args.output:
        out = export_csv(Path(args.output), session.headers, session.cleaned_rows)
        logger.info(f"exported {len(session.cleaned_rows)} rows to {out}")

    summary_line = render_summary_line(result)
    # log_summary adds the "SUMMARY " prefix itself
    log_summary(summary_line[len("SUMMARY "):])

    if result.failed_rows > 0 or result.aborted:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
