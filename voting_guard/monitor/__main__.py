"""
Lancer la surveillance d'une session de vote depuis la webcam locale

    python -m voting_guard.monitor --voter 1 --election india-2026 --token <JWT>
"""
import argparse
import asyncio
import logging

from voting_guard.config import settings
from voting_guard.monitor.camera import OpenCVFrameSource
from voting_guard.monitor.evaluators import HttpSecurityEvaluator
from voting_guard.monitor.listener import LoggingListener
from voting_guard.monitor.session import SessionMonitor


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Surveillance webcam d'une session de vote")
    parser.add_argument("--voter", required=True, help="Identifiant de l'électeur")
    parser.add_argument("--election", required=True, help="Identifiant de l'élection")
    parser.add_argument("--token", help="Token JWT de l'électeur")
    parser.add_argument("--url", default=settings.SECURITY_CHECK_URL, help="Endpoint de vérification")
    parser.add_argument("--device", default=0, help="Index ou chemin de la caméra")
    parser.add_argument("--interval", type=float, default=settings.MONITOR_CHECK_INTERVAL_SECONDS)
    return parser.parse_args(argv)


async def main(argv=None):
    args = parse_args(argv)
    device = int(args.device) if str(args.device).isdigit() else args.device

    evaluator = HttpSecurityEvaluator(url=args.url, token=args.token)
    monitor = SessionMonitor(
        voter_id=args.voter,
        election_id=args.election,
        frame_source=OpenCVFrameSource(device),
        evaluator=evaluator,
        listener=LoggingListener(),
        interval=args.interval,
    )

    try:
        async with monitor:
            await monitor.wait()
    finally:
        evaluator.close()


def run(argv=None):
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        asyncio.run(main(argv))
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Surveillance interrompue")


if __name__ == "__main__":
    run()
