"""Import spreadsheets dropped into the imports/ folder."""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.importers.spreadsheets import SPREADSHEET_EXTENSIONS, import_file

logger = logging.getLogger(__name__)

PROCESSED_DIRNAME = "processed"


def pending_files(imports_dir: Path) -> list[Path]:
    if not imports_dir.exists():
        return []
    return sorted(
        p for p in imports_dir.iterdir()
        if p.is_file() and p.suffix.lower() in SPREADSHEET_EXTENSIONS
    )


def move_to_processed(path: Path, processed_dir: Path) -> Path:
    processed_dir.mkdir(parents=True, exist_ok=True)
    target = processed_dir / f"{int(time.time() * 1000)}_{path.name}"
    shutil.move(str(path), str(target))
    logger.info(f"Moved to: {PROCESSED_DIRNAME}/{target.name}")
    return target


def process_file(db: Session, path: Path, processed_dir: Path) -> Optional[dict]:
    """Import ``path`` and move it aside; a failed file stays where it is."""
    try:
        result = import_file(db, path)
    except (OSError, ValueError, SQLAlchemyError) as e:
        db.rollback()
        logger.error(f"Error processing {path.name}: {e}")
        return None
    move_to_processed(path, processed_dir)
    return result


class ImportWatcher:
    """Polls ``imports_dir`` and imports every spreadsheet that appears."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        imports_dir: Optional[Path] = None,
        poll_seconds: Optional[float] = None,
        settle_seconds: float = 1.0,
    ):
        self.session_factory = session_factory
        self.imports_dir = Path(imports_dir or settings.imports_dir)
        self.processed_dir = self.imports_dir / PROCESSED_DIRNAME
        self.poll_seconds = settings.watch_poll_seconds if poll_seconds is None else poll_seconds
        self.settle_seconds = settle_seconds

    def process_pending(self) -> list[dict]:
        self.imports_dir.mkdir(parents=True, exist_ok=True)
        files = pending_files(self.imports_dir)
        if files:
            logger.info(f"Found {len(files)} file(s) to process in {self.imports_dir}")

        results = []
        db = self.session_factory()
        try:
            for path in files:
                result = process_file(db, path, self.processed_dir)
                if result:
                    results.append(result)
        finally:
            db.close()
        return results

    def watch(self, max_cycles: Optional[int] = None) -> None:
        """Process what is already waiting, then poll until interrupted."""
        logger.info(f"Watching {self.imports_dir} for .xls/.xlsx/.ods files")
        self.process_pending()
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            time.sleep(self.poll_seconds)
            cycles += 1
            if pending_files(self.imports_dir):
                # let the copy finish before reading
                time.sleep(self.settle_seconds)
                self.process_pending()
