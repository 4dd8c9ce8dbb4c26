"""
Extension registry

Keeps the list of installed add-ons (lyrics providers, visualizations,
automations) with their enabled state, persists it under its own storage key
and broadcasts every change through an Observable, the same way the
enhancement queue publishes its tasks.
"""

import copy
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core.exceptions import StorageError
from ..core.observable import Observable
from ..core.storage import KeyValueStore
from ..utils.logger import get_logger


EXTENSIONS_KEY = "melodix-extensions-v1"


class ExtensionType(Enum):
    LYRICS_PROVIDER = "lyrics-provider"
    AUDIO_EFFECT = "audio-effect"
    VISUALIZATION = "visualization"
    AUTOMATION = "automation"
    UI_MOD = "ui-mod"
    TAG_PROVIDER = "tag-provider"


@dataclass
class Extension:
    """
    An installed add-on

    Attributes:
        id: Unique extension identifier
        name: Display name
        version: Extension version string
        author: Publisher
        description: One-line summary
        type: What the extension provides
        enabled: Whether the extension is active
        permissions: Capabilities the extension asks for
        has_settings: Whether the extension exposes a settings page
    """
    id: str
    name: str
    type: ExtensionType
    version: str = "1.0.0"
    author: str = "Unknown"
    description: str = ""
    enabled: bool = True
    permissions: List[str] = field(default_factory=list)
    has_settings: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Extension':
        return cls(
            id=str(data['id']),
            name=data.get('name') or str(data['id']),
            type=ExtensionType(data['type']),
            version=data.get('version', "1.0.0"),
            author=data.get('author', "Unknown"),
            description=data.get('description', ""),
            enabled=data.get('status', 'enabled') == 'enabled',
            permissions=list(data.get('permissions') or []),
            has_settings=bool(data.get('has_settings', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type.value,
            'version': self.version,
            'author': self.author,
            'description': self.description,
            'status': 'enabled' if self.enabled else 'disabled',
            'permissions': list(self.permissions),
            'has_settings': self.has_settings,
        }


def default_extensions() -> List[Extension]:
    """Extensions shipped with a fresh installation"""
    return [
        Extension(
            id="core-gemini-ai",
            name="Gemini Neural Core",
            version="2.5.0",
            author="MelodixLabs",
            description="Official AI provider for lyrics, metadata correction, and smart playlists.",
            type=ExtensionType.AUTOMATION,
            permissions=["network", "metadata-access"],
            has_settings=True,
        ),
        Extension(
            id="lrc-local-provider",
            name="Local LRC Finder",
            version="1.0.2",
            author="MelodixLabs",
            description="Searches for .lrc files in the same directory as your music.",
            type=ExtensionType.LYRICS_PROVIDER,
            permissions=["filesystem"],
        ),
    ]


class ExtensionRegistry:
    """Installed extensions with persistence and change notifications"""

    def __init__(self, store: KeyValueStore, key: str = EXTENSIONS_KEY):
        self.store = store
        self.key = key
        self.logger = get_logger(__name__)
        self._lock = threading.RLock()
        self._extensions: List[Extension] = []
        self._bus: Observable[Tuple[Extension, ...]] = Observable(self.snapshot, name="extension registry", lock=self._lock)
        self._load()

    def _load(self) -> None:
        try:
            records = self.store.get(self.key)
        except StorageError as e:
            self.logger.error(f"Failed to load extensions, using defaults: {e}")
            records = None

        if records is None:
            self._extensions = default_extensions()
            self._save()
            return

        for record in records if isinstance(records, list) else []:
            try:
                self._extensions.append(Extension.from_dict(record))
            except (KeyError, ValueError, TypeError) as e:
                self.logger.warning(f"Skipping malformed extension record: {e}")

    def _save(self) -> None:
        try:
            self.store.put(self.key, [ext.to_dict() for ext in self._extensions])
        except StorageError as e:
            self.logger.error(f"Failed to save extensions: {e}")
        self._bus.notify()

    def snapshot(self) -> Tuple[Extension, ...]:
        with self._lock:
            return tuple(copy.deepcopy(ext) for ext in self._extensions)

    def subscribe(self, callback: Callable[[Tuple[Extension, ...]], None]) -> Callable[[], None]:
        return self._bus.subscribe(callback)

    def get(self, extension_id: str) -> Optional[Extension]:
        with self._lock:
            for ext in self._extensions:
                if ext.id == extension_id:
                    return copy.deepcopy(ext)
        return None

    def toggle(self, extension_id: str) -> Optional[bool]:
        """
        Flip the enabled state of an extension

        Returns:
            The new enabled state, or None for an unknown id
        """
        with self._lock:
            for ext in self._extensions:
                if ext.id == extension_id:
                    ext.enabled = not ext.enabled
                    self.logger.info(f"Extension {extension_id} {'enabled' if ext.enabled else 'disabled'}")
                    self._save()
                    return ext.enabled
        self.logger.warning(f"Cannot toggle unknown extension {extension_id}")
        return None

    def install(self, extension: Extension) -> bool:
        """
        Install an extension (enabled); installing a known id again does nothing

        Returns:
            True if the extension was added
        """
        with self._lock:
            if any(ext.id == extension.id for ext in self._extensions):
                return False
            installed = copy.deepcopy(extension)
            installed.enabled = True
            self._extensions.append(installed)
            self.logger.info(f"Installed extension {extension.id} ({extension.version})")
            self._save()
            return True

    def uninstall(self, extension_id: str) -> bool:
        with self._lock:
            remaining = [ext for ext in self._extensions if ext.id != extension_id]
            if len(remaining) == len(self._extensions):
                return False
            self._extensions = remaining
            self.logger.info(f"Uninstalled extension {extension_id}")
            self._save()
            return True

    def get_by_type(self, extension_type: ExtensionType) -> List[Extension]:
        """Enabled extensions of a type, in installation order"""
        with self._lock:
            return [
                copy.deepcopy(ext) for ext in self._extensions
                if ext.type == extension_type and ext.enabled
            ]

    def get_active_provider(self, extension_type: ExtensionType) -> Optional[Extension]:
        providers = self.get_by_type(extension_type)
        return providers[0] if providers else None
