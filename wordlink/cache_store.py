import os
import json
import logging
import tempfile
from pathlib import Path
from typing import Dict

logger = logging.getLogger(__name__)


class JsonCacheStore:
    """Loads and saves association cache snapshots as one JSON file."""

    def __init__(self, path):
        self.path = Path(path)

    def load_snapshot(self) -> Dict:
        if not self.path.exists():
            logger.info(f"No cache file found at {self.path}. Starting with empty cache.")
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading association cache from {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error('Invalid cache file format. Starting with empty cache.')
            return {}
        logger.info(f"Association cache loaded from {self.path} ({len(data)} entries)")
        return data

    def save_snapshot(self, contents: Dict) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix='.cache-', suffix='.json')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(contents, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving association cache to {self.path}: {e}")
            return False
        logger.info(f"Association cache saved to {self.path} ({len(contents)} entries)")
        return True
