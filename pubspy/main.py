"""
PubSpy - ponto de entrada de linha de comando.

Uso:
    python -m pubspy.main discover ca-pub-1234567890123456
    python -m pubspy.main analyze https://exemplo.com.br
    python -m pubspy.main adstxt exemplo.com.br [ca-pub-1234567890123456]
    python -m pubspy.main test-provider
"""

import asyncio
import logging
import sys

from pubspy.core.exceptions import PubSpyError
from pubspy.core.logging_utils import setup_logging
from pubspy.services.discovery import create_pipeline
from pubspy.services.fetcher import close_http_client
from pubspy.services.verification import AdsTxtVerifier, render_report

setup_logging()
logger = logging.getLogger(__name__)

USAGE = __doc__


async def main(argv) -> int:
    if not argv:
        print(USAGE)
        return 2

    command, args = argv[0], argv[1:]
    pipeline = create_pipeline()
    try:
        if command == "discover" and args:
            result = await pipeline.discover_domains(args[0])
        elif command == "analyze" and args:
            result = await pipeline.analyze_target(args[0])
        elif command == "test-provider":
            result = await pipeline.test_provider_configuration()
        elif command == "adstxt" and args:
            analysis = await AdsTxtVerifier().check(args[0], args[1] if len(args) > 1 else None)
            print(render_report(analysis))
            return 0
        else:
            print(USAGE)
            return 2

        print(result.model_dump_json(indent=2))
        return 0

    except PubSpyError as e:
        logger.error(f"❌ {e}")
        return 1
    finally:
        await pipeline.close()
        await close_http_client()


def run():
    sys.exit(asyncio.run(main(sys.argv[1:])))


if __name__ == "__main__":
    run()
