"""Test the extension registry"""

from melodix.core.storage import JsonFileStore, MemoryStore
from melodix.extensions.registry import (
    EXTENSIONS_KEY, Extension, ExtensionRegistry, ExtensionType,
)


def make_extension(ext_id="visualizer-bars", ext_type=ExtensionType.VISUALIZATION, enabled=False):
    return Extension(id=ext_id, name="Spectrum Bars", type=ext_type, enabled=enabled)


class TestExtensionRegistry:
    """Test installed extensions management"""

    def test_fresh_store_gets_defaults(self, store):
        registry = ExtensionRegistry(store)

        ids = [ext.id for ext in registry.snapshot()]

        assert ids == ["core-gemini-ai", "lrc-local-provider"]
        assert len(store.get(EXTENSIONS_KEY)) == 2

    def test_toggle_persists(self, store):
        registry = ExtensionRegistry(store)

        assert registry.toggle("lrc-local-provider") is False
        assert ExtensionRegistry(store).get("lrc-local-provider").enabled is False
        assert registry.toggle("lrc-local-provider") is True

    def test_toggle_unknown(self, store):
        assert ExtensionRegistry(store).toggle("nope") is None

    def test_install_is_idempotent(self, store):
        registry = ExtensionRegistry(store)

        assert registry.install(make_extension()) is True
        assert registry.install(make_extension()) is False
        assert registry.get("visualizer-bars").enabled is True
        assert len(registry.snapshot()) == 3

    def test_uninstall(self, store):
        registry = ExtensionRegistry(store)

        assert registry.uninstall("core-gemini-ai") is True
        assert registry.uninstall("core-gemini-ai") is False
        assert [ext.id for ext in ExtensionRegistry(store).snapshot()] == ["lrc-local-provider"]

    def test_active_provider_skips_disabled(self, store):
        registry = ExtensionRegistry(store)
        registry.install(make_extension("second-lyrics", ExtensionType.LYRICS_PROVIDER))

        assert registry.get_active_provider(ExtensionType.LYRICS_PROVIDER).id == "lrc-local-provider"
        registry.toggle("lrc-local-provider")
        assert registry.get_active_provider(ExtensionType.LYRICS_PROVIDER).id == "second-lyrics"
        assert registry.get_active_provider(ExtensionType.UI_MOD) is None

    def test_subscribers_see_changes(self, store):
        registry = ExtensionRegistry(store)
        received = []

        registry.subscribe(received.append)
        registry.toggle("core-gemini-ai")

        assert len(received) == 2
        assert received[1][0].enabled is False

    def test_snapshot_is_a_copy(self, store):
        registry = ExtensionRegistry(store)
        registry.snapshot()[0].enabled = False
        assert registry.get("core-gemini-ai").enabled is True

    def test_persisted_format(self):
        store = MemoryStore()
        ExtensionRegistry(store)

        record = store.get(EXTENSIONS_KEY)[0]

        assert record['status'] == 'enabled'
        assert record['type'] == 'automation'
        assert Extension.from_dict(record).has_settings is True

    def test_unreadable_store_uses_defaults(self, temp_dir):
        path = temp_dir / "store.json"
        path.write_text("not json", encoding="utf-8")

        registry = ExtensionRegistry(JsonFileStore(path))

        assert len(registry.snapshot()) == 2
