import asyncio
import sys
from pathlib import Path

from catalog_sync.instance_lock import AlreadyRunningError, PidFileLock
from catalog_sync.main import main


def run() -> None:
    lock = PidFileLock(Path(".run") / "catalog_sync.lock")
    try:
        with lock:
            asyncio.run(main())
    except AlreadyRunningError as exc:
        print(str(exc), file=sys.stderr)
        raise SystemExit(12) from exc
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
