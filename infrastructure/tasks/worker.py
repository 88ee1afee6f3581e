"""Entry point for running a Celery worker with the embedded beat scheduler.

Production deployments usually run `celery -A infrastructure.tasks worker`
and `celery -A infrastructure.tasks beat` separately.
"""
from __future__ import annotations

from .config.celery import celery_app


def main() -> None:
    celery_app.worker_main(
        argv=["worker", "--beat", "--loglevel=INFO", "--queues=default,maintenance", "--hostname=worker@%h"]
    )


if __name__ == "__main__":
    main()
