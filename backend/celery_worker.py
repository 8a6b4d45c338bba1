#!/usr/bin/env python3
"""
Starts a Celery worker (with the beat scheduler) for the notifications queue
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from examguard.core.celery_app import celery_app  # noqa: E402

if __name__ == '__main__':
    celery_app.worker_main(argv=['worker', '--beat', '--loglevel=info', '--queues=notifications'] + sys.argv[1:])
