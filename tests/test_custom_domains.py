"""
Tests for CustomDomainRegistry and legacy migration
"""

import pytest

from hostkeeper.custom_domains import (
    CUSTOM_DOMAINS_KEY,
    CustomDomainRegistry,
    StorageShape,
    decode_custom_domains,
    migrate_legacy_entry,
)
from hostkeeper.merger import merge_entries

from conftest import BrokenStore, StubResolver

NOW = "2024-01-15T08:00:00.000Z"

LEGACY_DOCUMENT = {
    "example.com": {"domain": "example.com", "ip": "93.184.216.34", "addedAt": "2023-06-01T00:00:00.000Z"},
    "intranet.test": {"ip": "10.1.2.3"},
    "broken.test": {"domain": "broken.test"},
}


@pytest.fixture
def resolver():
    return StubResolver({"example.com": "93.184.216.34", "docs.example.com": "93.184.216.40"})


@pytest.fixture
def registry(store, resolver, clock):
    return CustomDomainRegistry(store, resolver, clock=clock)


class TestAdd:

    def test_add_without_ip_resolves_via_dns(self, registry, store):
        entry = registry.add("example.com")

        assert entry.ip == "93.184.216.34"
        assert entry.resolve_method == "dns"
        assert entry.standard_ip == entry.optimized_ip == "93.184.216.34"
        assert entry.is_update is False
        assert store.get(CUSTOM_DOMAINS_KEY) == [entry.to_dict()]

    def test_add_with_manual_ip_records_standard_resolution(self, registry):
        entry = registry.add("example.com", "1.2.3.4")

        assert entry.ip == "1.2.3.4"
        assert entry.optimized_ip == "1.2.3.4"
        assert entry.standard_ip == "93.184.216.34"
        assert entry.resolve_method == "manual"

    def test_manual_ip_is_saved_even_if_standard_resolution_fails(self, registry):
        entry = registry.add("unknown.example.org", "1.2.3.4")

        assert entry.ip == "1.2.3.4"
        assert entry.standard_ip is None

    def test_failed_resolution_writes_nothing(self, registry, store):
        assert registry.add("unknown.example.org") is None
        assert CUSTOM_DOMAINS_KEY not in store

    def test_re_adding_updates_in_place(self, registry, clock):
        registry.add("example.com")
        registry.add("docs.example.com")
        clock.advance(hours=1)

        entry = registry.add("example.com", "5.6.7.8")

        entries = registry.list()
        assert entry.is_update is True
        assert [e.domain for e in entries] == ["example.com", "docs.example.com"]
        assert entries[0].ip == "5.6.7.8"
        assert entries[0].added_at == NOW
        assert entries[0].resolved_at == "2024-01-15T09:00:00.000Z"

    def test_domain_is_normalized(self, registry):
        entry = registry.add("  Example.COM ")
        assert entry.domain == "example.com"

    @pytest.mark.parametrize("domain", ["", "localhost", "not a domain.com", "bad_domain!.com", "example.c"])
    def test_invalid_domain_raises(self, registry, domain):
        with pytest.raises(ValueError):
            registry.add(domain)

    @pytest.mark.parametrize("ip", ["256.1.1.1", "1.2.3", "abc", "::1"])
    def test_invalid_ip_raises(self, registry, ip):
        with pytest.raises(ValueError):
            registry.add("example.com", ip)

    def test_unreadable_storage_aborts_without_overwriting(self, resolver, clock):
        store = BrokenStore(initial={CUSTOM_DOMAINS_KEY: [{"domain": "keep.example.com", "ip": "1.1.1.1"}]})
        store.fail_get = True
        registry = CustomDomainRegistry(store, resolver, clock=clock)

        assert registry.add("example.com") is None

        store.fail_get = False
        assert [e.domain for e in registry.list()] == ["keep.example.com"]

    def test_storage_write_failure_returns_none(self, resolver, clock):
        registry = CustomDomainRegistry(BrokenStore(fail_put=True), resolver, clock=clock)
        assert registry.add("example.com") is None


class TestAddMany:

    def test_mixed_batch(self, registry):
        registry.add("example.com")

        report = registry.add_many([
            "example.com",
            {"domain": "docs.example.com"},
            {"domain": "manual.example.com", "ip": "10.0.0.9"},
            "unknown.example.org",
            "bad_domain!",
            {"ip": "1.1.1.1"},
        ])

        assert report['added'] == 3
        assert report['failed'] == 3
        assert report['results'] == [
            {'domain': 'example.com', 'status': 'updated'},
            {'domain': 'docs.example.com', 'status': 'success'},
            {'domain': 'manual.example.com', 'status': 'success'},
        ]
        assert [e['domain'] for e in report['errors']] == ["unknown.example.org", "bad_domain!", "unknown"]


class TestLegacyMigration:

    def test_legacy_object_is_migrated_and_persisted_once(self, resolver, clock):
        store = BrokenStore(initial={CUSTOM_DOMAINS_KEY: LEGACY_DOCUMENT})
        store.puts = 0
        registry = CustomDomainRegistry(store, resolver, clock=clock)

        first = registry.list()
        second = registry.list()

        assert first == second
        assert store.puts == 1
        assert isinstance(store.get(CUSTOM_DOMAINS_KEY), list)

    def test_migrated_entry_fields(self):
        entry = migrate_legacy_entry("intranet.test", {"ip": "10.1.2.3"}, NOW)

        assert entry.domain == "intranet.test"
        assert entry.added_at == entry.resolved_at == NOW
        assert entry.standard_ip == entry.optimized_ip == "10.1.2.3"
        assert entry.resolve_method == "migrated"
        assert entry.is_active is True

    def test_legacy_entry_without_ip_is_kept_active(self):
        entry = migrate_legacy_entry("broken.test", {"domain": "broken.test"}, NOW)

        assert entry.ip == ""
        assert entry.standard_ip is None
        assert entry.is_active is True

    def test_migrated_entry_without_ip_is_not_served(self, resolver, clock):
        store = BrokenStore(initial={CUSTOM_DOMAINS_KEY: LEGACY_DOCUMENT})
        registry = CustomDomainRegistry(store, resolver, clock=clock)

        merged = merge_entries([("1.1.1.1", "github.com")], registry.active())

        assert [domain for _, domain in merged] == ["github.com", "example.com", "intranet.test"]

    def test_added_at_is_preserved(self):
        entry = migrate_legacy_entry("example.com", LEGACY_DOCUMENT["example.com"], NOW)
        assert entry.added_at == "2023-06-01T00:00:00.000Z"

    def test_decode_is_idempotent(self):
        shape, entries = decode_custom_domains(LEGACY_DOCUMENT, NOW)
        reshape, again = decode_custom_domains([e.to_dict() for e in entries], NOW)

        assert shape is StorageShape.LEGACY_OBJECT
        assert reshape is StorageShape.CURRENT_ARRAY
        assert again == entries

    def test_decode_shapes(self):
        assert decode_custom_domains(None, NOW) == (StorageShape.EMPTY, [])
        with pytest.raises(ValueError):
            decode_custom_domains("garbage", NOW)

    def test_entries_without_is_active_are_active(self):
        _, entries = decode_custom_domains([{"domain": "example.com", "ip": "1.2.3.4", "addedAt": NOW}], NOW)
        assert entries[0].is_active is True
        assert entries[0].resolved_at == NOW

    def test_duplicate_domains_collapse(self):
        _, entries = decode_custom_domains([
            {"domain": "example.com", "ip": "1.1.1.1"},
            {"domain": "other.example.com", "ip": "2.2.2.2"},
            {"domain": "example.com", "ip": "3.3.3.3"},
        ], NOW)

        assert [(e.domain, e.ip) for e in entries] == [("example.com", "3.3.3.3"), ("other.example.com", "2.2.2.2")]

    def test_garbage_document_lists_as_empty(self, resolver, clock):
        registry = CustomDomainRegistry(BrokenStore(initial={CUSTOM_DOMAINS_KEY: "oops"}), resolver, clock=clock)
        assert registry.list() == []


class TestLifecycle:

    def test_deactivated_entry_is_kept_but_not_active(self, registry):
        registry.add("example.com")
        registry.add("docs.example.com")

        assert registry.set_active("example.com", False) is True

        assert len(registry.list()) == 2
        assert [e.domain for e in registry.active()] == ["docs.example.com"]

        assert registry.set_active("example.com", True) is True
        assert len(registry.active()) == 2

    def test_set_active_unknown_domain(self, registry):
        assert registry.set_active("example.com", False) is False

    def test_get(self, registry):
        registry.add("example.com")
        assert registry.get("EXAMPLE.com").ip == "93.184.216.34"
        assert registry.get("docs.example.com") is None

    def test_remove(self, registry):
        registry.add("example.com")

        assert registry.remove("example.com") is True
        assert registry.remove("example.com") is False
        assert registry.list() == []

    def test_clear_returns_count(self, registry, store):
        registry.add("example.com")
        registry.add("docs.example.com")

        assert registry.clear() == 2
        assert CUSTOM_DOMAINS_KEY not in store
        assert registry.clear() == 0
