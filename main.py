"""Async entrypoint that loads configuration, then starts the counter, processor, and ingester."""

import asyncio
import sys

import structlog
from rich.markup import escape

from phishwatch.commons import PhishWatchError
from phishwatch.config import Config
from phishwatch.counter import Counter
from phishwatch.decomposer import Decomposer
from phishwatch.ingester import Ingester
from phishwatch.log import configure_logging
from phishwatch.output import Output, create_console
from phishwatch.processor import Processor

logger = structlog.get_logger("phishwatch.main")


async def main(config: Config) -> None:
    """Start the pipeline in stages and run until the stream ends."""
    # The suffix list must be available before the first certificate arrives
    decomposer: Decomposer = await asyncio.to_thread(Decomposer.load, config.suffix_list)

    output = Output(log_path=config.output.log_path)
    counter = Counter(interval_s=config.counter.interval_s)
    processor = Processor(
        keywords=config.keywords,
        decomposer=decomposer,
        output=output,
        counter=counter,
        workers=config.processor.workers,
    )
    ingester = Ingester(url=config.ingester.certstream_url)
    logger.info("keywords_loaded", count=len(processor.keywords))

    async with asyncio.TaskGroup() as tg:

        # 0) Start Counter
        if config.counter.enable:
            tg.create_task(counter.report(), name="counter_report")

        # 1) Start processor (scoring and output stage)
        tg.create_task(processor.start(ingester.queue), name="processor")

        # 2) Start ingester last so nothing is dropped
        output.banner()
        tg.create_task(ingester.start(), name="ingester")


def run() -> None:
    err_console = create_console(stderr=True)
    try:
        config = Config.load()
    except (FileNotFoundError, ValueError) as e:
        err_console.print(f"[pw.error]Configuration error:[/] {escape(str(e))}")
        sys.exit(1)

    configure_logging(verbose=config.logging.verbose, log_json=config.logging.json)
    try:
        asyncio.run(main(config))
    except KeyboardInterrupt:
        err_console.print("Shutdown requested (Ctrl-C).")
    except PhishWatchError as e:
        err_console.print(f"[pw.error]Fatal:[/] {escape(str(e))}")
        sys.exit(1)
    except ExceptionGroup as eg:
        # raised by the TaskGroup when the transport or a stage fails
        for e in eg.exceptions:
            err_console.print(f"[pw.error]Fatal:[/] {escape(str(e))}")
        sys.exit(1)


if __name__ == "__main__":
    run()
