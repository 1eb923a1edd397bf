"""Tests for website fingerprinting."""

from datetime import datetime

from conftest import make_crawl_result, make_page
from siteaudit.fingerprint import cache_key, diff_signatures, fingerprint
from siteaudit.models import MediaSummary


class TestFingerprint:
    """Test cases for fingerprint."""

    def test_idempotent(self):
        """Test that the same result always yields an equal signature."""
        result = make_crawl_result()

        first = fingerprint(result, now=datetime(2024, 1, 1))
        second = fingerprint(result, now=datetime(2024, 6, 1))

        assert first == second
        assert first.created_at != second.created_at

    def test_hex_digests(self):
        """Test that each digest is a SHA-256 hex string."""
        signature = fingerprint(make_crawl_result())

        for digest in (signature.content_hash, signature.structure_hash, signature.metadata_hash):
            assert len(digest) == 64
            int(digest, 16)

    def test_title_change_alters_content_only(self):
        """Test that a title change moves the content hash but not the structure hash."""
        before = fingerprint(make_crawl_result(title="Acme | Home"))
        after = fingerprint(make_crawl_result(title="Acme Widgets | Home"))

        assert before.content_hash != after.content_hash
        assert before.structure_hash == after.structure_hash
        assert before.metadata_hash == after.metadata_hash

    def test_navigation_change_alters_structure_only(self):
        """Test that navigation changes move the structure hash only."""
        before = fingerprint(make_crawl_result(navigation=["Home", "About"]))
        after = fingerprint(make_crawl_result(navigation=["Home", "About", "Shop"]))

        assert before.content_hash == after.content_hash
        assert before.structure_hash != after.structure_hash

    def test_navigation_order_matters(self):
        """Test that menu order is part of the structure."""
        before = fingerprint(make_crawl_result(navigation=["Home", "About"]))
        after = fingerprint(make_crawl_result(navigation=["About", "Home"]))

        assert before.structure_hash != after.structure_hash

    def test_images_change_structure(self):
        """Test that gaining images changes the structure hash."""
        plain = make_crawl_result()
        with_images = make_crawl_result(pages=[make_page(media=MediaSummary(images=2))])

        assert fingerprint(plain).structure_hash != fingerprint(with_images).structure_hash

    def test_metadata_rounding(self):
        """Test that load time is compared at 0.1s resolution."""
        base = fingerprint(make_crawl_result(load_time=1.23))
        close = fingerprint(make_crawl_result(load_time=1.24))
        slower = fingerprint(make_crawl_result(load_time=1.41))

        assert base.metadata_hash == close.metadata_hash
        assert base.metadata_hash != slower.metadata_hash
        assert base.cache_key == slower.cache_key

    def test_ssl_change_alters_metadata_only(self):
        """Test that TLS changes do not invalidate the cache key."""
        secure = fingerprint(make_crawl_result(has_ssl=True))
        insecure = fingerprint(make_crawl_result(has_ssl=False))

        assert secure.metadata_hash != insecure.metadata_hash
        assert secure.cache_key == insecure.cache_key

    def test_content_truncated(self):
        """Test that text beyond the hashed prefix does not affect the content hash."""
        long_text = "x" * 6000
        before = fingerprint(make_crawl_result(paragraphs=[long_text]))
        after = fingerprint(make_crawl_result(paragraphs=[long_text + " appended"]))

        assert before.content_hash == after.content_hash

    def test_empty_page_list_counts_as_one_page(self):
        """Test that a result without pages hashes like a single-page result."""
        single = make_crawl_result()
        empty = make_crawl_result(pages=[])

        assert fingerprint(single) == fingerprint(empty)


class TestCacheKey:
    """Test cases for cache_key and diff_signatures."""

    def test_cache_key_format(self):
        """Test that the key joins content and structure digests."""
        signature = fingerprint(make_crawl_result())

        assert cache_key(signature) == f"{signature.content_hash}-{signature.structure_hash}"

    def test_diff_signatures(self):
        """Test naming of changed projections."""
        base = fingerprint(make_crawl_result())
        changed = fingerprint(make_crawl_result(title="New title", has_ssl=False))

        assert diff_signatures(base, base) == []
        assert diff_signatures(base, changed) == ["content", "metadata"]

    def test_signature_round_trip(self):
        """Test that a signature survives serialization."""
        signature = fingerprint(make_crawl_result(), now=datetime(2024, 3, 1, 12, 0))
        restored = type(signature).from_dict(signature.to_dict())

        assert restored == signature
        assert restored.created_at == datetime(2024, 3, 1, 12, 0)
