#!/usr/bin/env python3
# backend/run_celery_worker.py
"""
Development Celery worker runner.

Runs the worker that executes the recurring series sweep and the monthly
credit allocation. Start ``run_celery_beat.py`` alongside it to schedule them.
"""
import os
from pathlib import Path
import subprocess
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

if __name__ == "__main__":
    concurrency = os.getenv("CELERY_CONCURRENCY", "2")
    print(f"🚀 Starting Celery worker (concurrency={concurrency})…")

    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "app.tasks.celery_app",
        "worker",
        "--loglevel=info",
        f"--concurrency={concurrency}",
        "--max-tasks-per-child=100",
    ]

    subprocess.run(cmd)
