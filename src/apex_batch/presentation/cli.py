"""CLI interface for the Apex batch executor."""
import argparse
import logging
import signal
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from apex_batch.application.batch_executor import BatchExecutor
from apex_batch.application.orgs import OrgDirectory
from apex_batch.application.progress import LoggingProgressSink
from apex_batch.application.service import JobService
from apex_batch.domain.exceptions import DomainException
from apex_batch.domain.models import BatchSummary
from apex_batch.infrastructure.config import BatchConfig, ConfigLoader
from apex_batch.infrastructure.salesforce import SfApexExecutor, SfOrgLister, SfRecordQuery
from apex_batch.infrastructure.storage import JsonJobStore, OrgCache
from apex_batch.shared.logging import get_logger, setup_logger

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_SCRIPT_FAILURES = 2
EXIT_INTERRUPTED = 130


def create_service_from_config(config: BatchConfig) -> JobService:
    """Create the job service with all dependencies from config."""
    executor = BatchExecutor(
        base_dir=config.base_dir,
        executor=SfApexExecutor(sf_binary=config.sf_binary, timeout=config.command_timeout),
        concurrency_limit=config.concurrency_limit,
        unit_extension=config.unit_extension,
        progress_buffer=config.progress_buffer,
    )
    return JobService(
        executor=executor,
        job_store=JsonJobStore.in_directory(config.base_dir),
        record_query=SfRecordQuery(sf_binary=config.sf_binary, timeout=config.query_timeout),
        org_directory=OrgDirectory(
            SfOrgLister(sf_binary=config.sf_binary, timeout=config.query_timeout),
            OrgCache.in_directory(config.base_dir),
        ),
    )


@contextmanager
def pause_on_interrupt(service: JobService):
    """First Ctrl-C pauses the running batch; a second one aborts."""
    logger = get_logger(__name__)

    def handler(signum, frame):
        logger.warning("Interrupt received: pausing after running scripts finish (Ctrl-C again to abort)")
        service.executor.request_pause()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    try:
        previous = signal.signal(signal.SIGINT, handler)
    except ValueError:
        # not in the main thread
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _read_template(args) -> Optional[str]:
    if getattr(args, 'template_file', None):
        return Path(args.template_file).read_text(encoding='utf-8')
    return getattr(args, 'template', None)


def _report(summary: BatchSummary) -> int:
    logger = get_logger(__name__)
    logger.info("=" * 60)
    if summary.paused:
        logger.info("Batch paused; run 'resume' to continue")
    else:
        logger.info("Batch completed")
    logger.info(f"Successful: {summary.successful}")
    logger.info(f"Failed:     {summary.failed}")
    logger.info(f"Total:      {summary.total}")
    if summary.skipped:
        logger.info(f"Skipped (already done): {summary.skipped}")
    if summary.resume_point_missing:
        logger.warning("Checkpoint did not match any script; all scripts were processed")
    logger.info(f"Duration:   {summary.duration_seconds:.1f}s")
    logger.info("=" * 60)
    return EXIT_SCRIPT_FAILURES if summary.failed else EXIT_OK


def cmd_prepare(service: JobService, args) -> int:
    template = _read_template(args)
    if template is None:
        raise DomainException("An Apex template is required (--template or --template-file)")
    result = service.prepare(
        args.job, args.soql, template, args.org,
        on_progress=LoggingProgressSink(level=logging.DEBUG),
    )
    get_logger(__name__).info(f"Prepared {result.record_count} script(s) in {result.unit_dir}")
    return EXIT_OK


def cmd_run(service: JobService, args) -> int:
    with pause_on_interrupt(service):
        summary = service.run(
            args.job,
            target_org=args.org,
            apex_template=_read_template(args),
            concurrency_limit=args.concurrency,
            on_progress=LoggingProgressSink(),
        )
    return _report(summary)


def cmd_resume(service: JobService, args) -> int:
    with pause_on_interrupt(service):
        summary = service.resume(args.job, concurrency_limit=args.concurrency, on_progress=LoggingProgressSink())
    return _report(summary)


def cmd_pause(service: JobService, args) -> int:
    service.pause(args.job)
    get_logger(__name__).info(f"Pause requested for job {args.job}")
    return EXIT_OK


def cmd_jobs(service: JobService, args) -> int:
    jobs = service.list_jobs()
    if not jobs:
        print("No jobs")
        return EXIT_OK
    for name, record in sorted(jobs.items(), key=lambda item: item[0].lower()):
        result = record.result or {}
        counts = f"{result.get('successful', 0)}/{result.get('total', 0)} ok" if result else "-"
        print(f"{name:30} {record.status.value:10} {record.target_org:25} {counts:12} {record.timestamp}")
    return EXIT_OK


def cmd_orgs(service: JobService, args) -> int:
    orgs = service.list_orgs(refresh=args.refresh)
    if not orgs:
        print("No orgs")
        return EXIT_OK
    for org in orgs:
        marks = ("U" if org.is_default_org else " ") + ("D" if org.is_default_dev_hub else " ")
        kind = "devhub" if org.is_dev_hub else "scratch" if org.is_scratch else "org"
        print(f"{marks} {org.alias:25} {org.username:40} {kind:8} {org.expiration_date or '-':12} {org.instance_url}")
    return EXIT_OK


def cmd_paths(service: JobService, args) -> int:
    unit_dir, results_dir = service.executor.directories(args.job)
    print(f"scripts: {unit_dir}")
    print(f"results: {results_dir}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apex-batch",
        description="Run generated Apex scripts in resumable, concurrent batches",
    )
    parser.add_argument('--config', type=Path, help='Config YAML file')
    parser.add_argument('--base-dir', type=Path, help='Storage root for scripts, results and checkpoints')
    parser.add_argument('--sf-binary', help='Path to the sf CLI')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose')

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    prepare = subparsers.add_parser('prepare', help='Query record ids and generate one script per record')
    prepare.add_argument('job', help='Job name (case-insensitive)')
    prepare.add_argument('--org', required=True, help='Target org alias or username')
    prepare.add_argument('--soql', required=True, help='SOQL query selecting the records')
    template = prepare.add_mutually_exclusive_group(required=True)
    template.add_argument('--template', help='Apex template; recordId is bound per script')
    template.add_argument('--template-file', type=Path, help='File holding the Apex template')
    prepare.set_defaults(func=cmd_prepare)

    run = subparsers.add_parser('run', help='Execute the scripts of a job')
    run.add_argument('job', help='Job name (case-insensitive)')
    run.add_argument('--org', help='Target org (defaults to the one stored with the job)')
    run_template = run.add_mutually_exclusive_group()
    run_template.add_argument('--template', help='Apex template stored with the job')
    run_template.add_argument('--template-file', type=Path, help='File holding the Apex template')
    run.add_argument('--concurrency', '-c', type=int, help='Parallel scripts (default from config)')
    run.set_defaults(func=cmd_run)

    resume = subparsers.add_parser('resume', help='Resume a paused or interrupted job')
    resume.add_argument('job', help='Job name (case-insensitive)')
    resume.add_argument('--concurrency', '-c', type=int, help='Parallel scripts (default from config)')
    resume.set_defaults(func=cmd_resume)

    pause = subparsers.add_parser('pause', help='Pause a running job')
    pause.add_argument('job', help='Job name (case-insensitive)')
    pause.set_defaults(func=cmd_pause)

    jobs = subparsers.add_parser('jobs', help='List known jobs')
    jobs.set_defaults(func=cmd_jobs)

    orgs = subparsers.add_parser('orgs', help='List orgs authenticated with the sf CLI')
    orgs.add_argument('--refresh', action='store_true', help='Ask the sf CLI instead of using the cached list')
    orgs.set_defaults(func=cmd_orgs)

    paths = subparsers.add_parser('paths', help='Show script and result directories of a job')
    paths.add_argument('job', help='Job name (case-insensitive)')
    paths.set_defaults(func=cmd_paths)

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, 'command', None):
        parser.print_help()
        return EXIT_ERROR

    logger = get_logger(__name__)
    try:
        overrides = {
            'base_dir': args.base_dir,
            'sf_binary': args.sf_binary,
            'log_level': 'DEBUG' if args.verbose else None,
        }
        config = ConfigLoader(config_path=args.config).load(overrides=overrides)
        setup_logger(level=config.log_level, log_file=config.log_file)

        service = create_service_from_config(config)
        return args.func(service, args)

    except DomainException as e:
        logger.error(f"Error: {e}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception(f"Error: {e}")
        return EXIT_ERROR


if __name__ == '__main__':
    sys.exit(main())
