# avsync_core/config.py
import json
import logging
from pathlib import Path

from .models.settings import AnalysisSettings

logger = logging.getLogger(__name__)


class AppConfig:
    """JSON-backed settings store.

    Unknown keys in the file are dropped on save and missing keys are filled
    from the defaults, so older settings files keep working.
    """

    def __init__(self, settings_path=None):
        self.settings_path = Path(settings_path) if settings_path else Path.cwd() / 'avsync_settings.json'
        self.defaults = {
            # --- External tools ---
            'ffmpeg_path': 'ffmpeg',
            'fpcalc_path': 'fpcalc',
            'log_error_tail': 20,
            **AnalysisSettings().to_dict(),
        }
        self.settings = {}
        self.load()

    def load(self):
        changed = False
        if self.settings_path.exists():
            try:
                with open(self.settings_path, 'r', encoding='utf-8') as f:
                    loaded_settings = json.load(f)
                if not isinstance(loaded_settings, dict):
                    raise ValueError('settings file must contain a JSON object')

                for key, default_value in self.defaults.items():
                    if key not in loaded_settings:
                        loaded_settings[key] = default_value
                        changed = True
                self.settings = loaded_settings
            except (json.JSONDecodeError, ValueError, OSError) as e:
                logger.warning('Could not read %s (%s); using defaults', self.settings_path, e)
                self.settings = self.defaults.copy()
                changed = True
        else:
            self.settings = self.defaults.copy()
            changed = True

        if changed:
            self.save()

    def save(self):
        try:
            settings_to_save = {k: self.settings.get(k) for k in self.defaults if k in self.settings}
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.settings_path, 'w', encoding='utf-8') as f:
                json.dump(settings_to_save, f, indent=4)
        except OSError as e:
            logger.error('Error saving settings: %s', e)

    def get(self, key: str, default=None):
        return self.settings.get(key, default)

    def set(self, key: str, value):
        self.settings[key] = value

    @property
    def tool_paths(self) -> dict:
        return {
            'ffmpeg': self.get('ffmpeg_path') or 'ffmpeg',
            'fpcalc': self.get('fpcalc_path') or 'fpcalc',
        }

    def analysis_settings(self) -> AnalysisSettings:
        return AnalysisSettings.from_config(self.settings)
