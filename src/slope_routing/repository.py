"""JSON file storage for riders profiles, one file per profile name."""

import json
import logging
import re
from pathlib import Path

from slope_routing.config import get_setting
from slope_routing.errors import ProfileFormatError
from slope_routing.profile import RidersProfile

logger = logging.getLogger(__name__)

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_name(name: str) -> str:
    """Reject profile names that could escape the profile directory."""
    if not isinstance(name, str) or not _NAME_PATTERN.match(name):
        raise ValueError(f"Invalid profile name: {name!r}")
    return name


class ProfileRepository:
    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    @classmethod
    def from_config(cls, config: dict | None = None) -> "ProfileRepository":
        return cls(Path(get_setting(config, "profiles_dir")).expanduser())

    def _path(self, name: str) -> Path:
        return self.directory / f"{validate_name(name)}.json"

    def get_profile(self, name: str) -> RidersProfile | None:
        """Load a stored profile, None if it does not exist.

        Raises:
            ProfileFormatError: if the file is not a valid profile.
        """
        path = self._path(name)
        if not path.exists():
            return None
        try:
            with path.open() as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ProfileFormatError(f"Profile {name} is not valid JSON: {e}") from e
        return RidersProfile.from_dict(data)

    def save_profile(self, name: str, profile: RidersProfile) -> Path:
        path = self._path(name)
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        with tmp_path.open("w") as f:
            json.dump(profile.to_dict(), f)
        tmp_path.replace(path)
        logger.debug("Saved profile %s to %s", name, path)
        return path

    def create_profile(self, name: str) -> RidersProfile:
        """Create and store an empty profile.

        Raises:
            FileExistsError: if a profile with this name already exists.
        """
        path = self._path(name)
        if path.exists():
            raise FileExistsError(f"Profile already exists: {name}")
        profile = RidersProfile()
        self.save_profile(name, profile)
        logger.info("Created profile %s", name)
        return profile

    def list_profiles(self) -> list[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))
