"""
Pick Pool - Main Entry Point
Runs the FastAPI backend under uvicorn
"""

import argparse
import subprocess
import sys
import os
import signal


def main():
    parser = argparse.ArgumentParser(description="Run the pick pool API")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--log-level", default="warning")
    args = parser.parse_args()

    os.chdir(os.path.dirname(os.path.abspath(__file__)))

    api_proc = subprocess.Popen([
        sys.executable, "-m", "uvicorn", "api.main:app",
        f"--host={args.host}", f"--port={args.port}",
        f"--log-level={args.log_level}",
    ])

    def shutdown(signum, frame):
        api_proc.terminate()
        sys.exit(0)

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    try:
        api_proc.wait()
    except KeyboardInterrupt:
        pass
    finally:
        api_proc.terminate()


if __name__ == "__main__":
    main()
