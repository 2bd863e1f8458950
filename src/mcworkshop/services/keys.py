"""SSH key material loading for mcworkshop."""

import os

from mcworkshop.constants import PRIVATE_KEY_FILENAME, PUBLIC_KEY_FILENAME
from mcworkshop.errors import ConfigurationLoadFailure
from mcworkshop.errors_catalog import actionable_error
from mcworkshop.models import KeyMaterial


class KeyLoader:
    """Reads the workshop key pair from fixed file names."""

    def __init__(self, logger):
        self.logger = logger

    def load(self, keys_dir: str) -> KeyMaterial:
        public_path = os.path.join(keys_dir, PUBLIC_KEY_FILENAME)
        private_path = os.path.join(keys_dir, PRIVATE_KEY_FILENAME)

        public_key = self._read(public_path)
        private_key = self._read(private_path)
        self.logger.debug("Loaded key pair from %s", keys_dir)

        return KeyMaterial(
            public_key=public_key.strip(),
            private_key=private_key,
            private_key_path=private_path,
        )

    def _read(self, path: str) -> str:
        try:
            with open(path, "r", encoding="utf-8") as file_obj:
                content = file_obj.read()
        except OSError as exc:
            raise ConfigurationLoadFailure(self._missing(path)) from exc

        if not content.strip():
            raise ConfigurationLoadFailure(self._missing(path))
        return content

    @staticmethod
    def _missing(path: str) -> str:
        stem = os.path.splitext(path)[0]
        return actionable_error("missing_key_file", path=path, path_stem=stem)
