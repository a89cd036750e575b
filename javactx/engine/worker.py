"""
Engine worker process: reads JSON request lines on stdin, writes responses on stdout.

stderr is the diagnostic channel; the readiness marker is written there once
the engine can accept requests.
"""
import json
import logging
import sys
from typing import TextIO

import click

from javactx.core.config import EngineConfig
from .engine import AnalysisEngine


READY_MARKER = "javactx engine ready"

logger = logging.getLogger(__name__)


def serve(engine: AnalysisEngine, instream: TextIO, outstream: TextIO, errstream: TextIO) -> int:
    """
    Answer requests until ``instream`` reaches EOF.

    Returns:
        Number of requests handled
    """
    errstream.write(READY_MARKER + "\n")
    errstream.flush()

    handled = 0
    for line in instream:
        line = line.strip()
        if not line:
            continue
        outstream.write(engine.handle_line(line) + "\n")
        outstream.flush()
        handled += 1

    logger.info(f"Input closed after {handled} requests, shutting down")
    return handled


@click.command()
@click.argument("project_root", type=click.Path(exists=True, file_okay=False))
@click.option("--config-json", default=None, help="Engine configuration as a JSON object")
@click.option("--config-file", default=None, type=click.Path(exists=True, dir_okay=False),
              envvar="JAVACTX_CONFIG", help="Engine configuration JSON file")
@click.option("--log-level", default="INFO", envvar="JAVACTX_LOG_LEVEL",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def main(project_root, config_json, config_file, log_level):
    """Run the javactx analysis engine for PROJECT_ROOT over stdin/stdout."""
    logging.basicConfig(
        level=log_level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if config_file:
        config = EngineConfig.from_file(config_file, project_root=project_root)
    else:
        data = json.loads(config_json) if config_json else {}
        data["project_root"] = project_root
        config = EngineConfig(**data)

    engine = AnalysisEngine(config)
    logger.info(f"Starting engine for {config.project_root}")
    serve(engine, sys.stdin, sys.stdout, sys.stderr)


if __name__ == "__main__":
    main()
